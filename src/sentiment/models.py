import json
from pathlib import Path

import numpy as np
from tensorflow import keras
from tensorflow.keras import layers

from exception import UnknownModelTypeException
from sentiment.data import INDEX_FROM, OOV_CHAR, PAD_CHAR, START_CHAR, load_data, load_metadata_template
from utils import print_event

TAG = "sentiment"
MODEL_SAVE_PATH = Path("models", "sentiment", "original")

MODEL_TYPES = ["flatten", "cnn", "simple-rnn", "lstm", "bidirectional-lstm"]


def build_model(model_type: str, max_len: int, vocabulary_size: int, embedding_size: int):
    """Builds a binary classifier over sequences of word indices.

    All model types start with a trainable word embedding and end with a single
    sigmoid unit giving the probability that the review is positive.
    """
    model = keras.Sequential(name=model_type.replace("-", "_"))
    model.add(layers.Input((max_len,), dtype="int32"))
    model.add(layers.Embedding(vocabulary_size, embedding_size, name="embedding"))
    if model_type == "flatten":
        model.add(layers.Flatten())
    elif model_type == "cnn":
        model.add(layers.Dropout(0.5))
        model.add(layers.Conv1D(250, 5, strides=1, padding="valid", activation="relu"))
        model.add(layers.GlobalMaxPooling1D())
        model.add(layers.Dense(250, activation="relu"))
    elif model_type == "simple-rnn":
        model.add(layers.SimpleRNN(32))
    elif model_type == "lstm":
        model.add(layers.LSTM(32))
    elif model_type == "bidirectional-lstm":
        model.add(layers.Bidirectional(layers.LSTM(32), merge_mode="concat"))
    else:
        raise UnknownModelTypeException(f"Unsupported model type: {model_type}")
    model.add(layers.Dense(1, activation="sigmoid"))

    model.compile(loss="binary_crossentropy", optimizer="adam", metrics=["accuracy"])
    return model


def write_embedding_matrix_and_labels(model, prefix: str, word_index: dict, index_from: int):
    """Writes the learned embedding vectors and their word labels as TSV files
    (`<prefix>_vectors.tsv` and `<prefix>_labels.tsv`)."""
    embedding = model.get_layer("embedding").get_weights()[0]
    vocabulary_size = embedding.shape[0]

    index_to_word = {PAD_CHAR: "[PAD]", START_CHAR: "[START]", OOV_CHAR: "[OOV]"}
    for word, index in word_index.items():
        index_to_word[index + index_from] = word

    Path(prefix).parent.mkdir(parents=True, exist_ok=True)
    vectors_path = f"{prefix}_vectors.tsv"
    with open(vectors_path, "w", encoding="utf-8") as vectors_file:
        for row in embedding:
            vectors_file.write("\t".join(f"{value:.5f}" for value in row) + "\n")
    print_event(TAG, f"Embedding vectors written to {vectors_path}")

    labels_path = f"{prefix}_labels.tsv"
    with open(labels_path, "w", encoding="utf-8") as labels_file:
        for i in range(vocabulary_size):
            labels_file.write(index_to_word.get(i, f"[{i}]") + "\n")
    print_event(TAG, f"Embedding labels written to {labels_path}")


def train_model(
    model_type: str = "lstm",
    num_words: int = 10000,
    max_len: int = 100,
    embedding_size: int = 128,
    epochs: int = 10,
    batch_size: int = 128,
    validation_split: float = 0.2,
    save_path: Path = MODEL_SAVE_PATH,
    embedding_files_prefix: str = None,
    data: dict = None,
    metadata: dict = None,
):
    if data is None:
        print_event(TAG, "Loading data...")
        data = load_data(num_words, max_len)
    x_train, y_train = data["x_train"], data["y_train"]
    x_test, y_test = data["x_test"], data["y_test"]

    model = build_model(model_type, max_len, num_words, embedding_size)
    model.summary()

    history = model.fit(
        x_train,
        y_train,
        epochs=epochs,
        batch_size=batch_size,
        validation_split=validation_split,
    )

    test_loss, test_accuracy = model.evaluate(x_test, y_test, batch_size=batch_size, verbose=0)
    print_event(TAG, f"Evaluation loss: {test_loss:.4f}; accuracy: {test_accuracy:.4f}")

    if metadata is None:
        metadata = load_metadata_template()
    metadata = dict(metadata)
    metadata.update(
        {
            "max_len": max_len,
            "model_type": model_type,
            "epochs": epochs,
            "embedding_size": embedding_size,
            "batch_size": batch_size,
            "vocabulary_size": num_words,
            "test_accuracy": float(test_accuracy),
        }
    )

    if save_path is not None:
        save_path = Path(save_path)
        save_path.mkdir(parents=True, exist_ok=True)
        model.save(save_path / "model.keras")
        with open(save_path / "metadata.json", "w", encoding="utf-8") as metadata_file:
            metadata_file.write(json.dumps(metadata))
        print_event(TAG, f"Model saved to {save_path}")

    if embedding_files_prefix:
        write_embedding_matrix_and_labels(
            model,
            embedding_files_prefix,
            metadata.get("word_index", {}),
            metadata.get("index_from", INDEX_FROM),
        )

    return model, history


def evaluate_accuracy(model, x: np.ndarray, y: np.ndarray, batch_size: int = 128) -> float:
    probabilities = model.predict(x, batch_size=batch_size, verbose=0)
    predictions = (probabilities > 0.5).astype(np.float32)
    return float(np.mean(predictions == y))
