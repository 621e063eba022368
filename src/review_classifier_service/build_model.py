"""Export the review sentiment model to a quantized ONNX file for main.py.

    python build_model.py
    python build_model.py --model-id siebert/sentiment-roberta-large-english --out sentiment_model_onnx
"""

import argparse
import os

from optimum.onnxruntime import ORTModelForSequenceClassification, ORTQuantizer
from optimum.onnxruntime.configuration import AutoQuantizationConfig
from transformers import AutoTokenizer

# The model the UI reaches through the hosted API. Labels: NEGATIVE, POSITIVE
DEFAULT_MODEL_ID = "siebert/sentiment-roberta-large-english"
DEFAULT_SAVE_DIRECTORY = "sentiment_model_onnx"


def build(model_id: str, save_directory: str) -> None:
    print(f"Downloading and exporting {model_id} to ONNX...")
    model = ORTModelForSequenceClassification.from_pretrained(model_id, export=True)
    tokenizer = AutoTokenizer.from_pretrained(model_id)

    # Dynamic int8 keeps the large RoBERTa usable on a laptop CPU
    print("Quantizing model...")
    quantizer = ORTQuantizer.from_pretrained(model)
    qconfig = AutoQuantizationConfig.avx2(is_static=False, per_channel=False)
    quantizer.quantize(save_dir=save_directory, quantization_config=qconfig)
    tokenizer.save_pretrained(save_directory)

    # main.py only loads the quantized file
    full_precision = os.path.join(save_directory, "model.onnx")
    if os.path.exists(full_precision):
        os.remove(full_precision)

    print(f"Done! Saved to {save_directory}/, labels: {model.config.id2label}")


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--model-id", default=DEFAULT_MODEL_ID)
    parser.add_argument("--out", default=DEFAULT_SAVE_DIRECTORY, help="must match model_path in main.py")
    args = parser.parse_args()
    build(args.model_id, args.out)


if __name__ == "__main__":
    main()
