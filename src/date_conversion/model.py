"""
Sequence-to-sequence model with attention for converting date formats.

Based on Python Keras examples of attention-based seq2seq translation.
"""
import numpy as np
from tensorflow import keras
from tensorflow.keras import layers

from date_conversion.date_format import (
    OUTPUT_LENGTH,
    OUTPUT_VOCAB,
    START_CODE,
    encode_input_date_strings,
)

EMBEDDING_DIMS = 64
LSTM_UNITS = 64


def create_model(input_vocab_size, output_vocab_size, input_length, output_length):
    """Creates the attention-based encoder-decoder model.

    Args:
        input_vocab_size: Input vocabulary size.
        output_vocab_size: Output vocabulary size.
        input_length: Maximum input length.
        output_length: Output length.

    Returns:
        (keras.Model) A compiled model that takes [encoder_input, decoder_input] and
        outputs the per-step softmax over the output vocabulary.
    """
    encoder_input = layers.Input((input_length,), name="encoder_input")
    decoder_input = layers.Input((output_length,), name="decoder_input")

    encoder = layers.Embedding(input_vocab_size, EMBEDDING_DIMS)(encoder_input)
    encoder, state_h, state_c = layers.LSTM(
        LSTM_UNITS, return_sequences=True, return_state=True
    )(encoder)

    decoder = layers.Embedding(output_vocab_size, EMBEDDING_DIMS)(decoder_input)
    decoder = layers.LSTM(LSTM_UNITS, return_sequences=True)(
        decoder, initial_state=[state_h, state_c]
    )

    attention = layers.Dot(axes=[2, 2])([decoder, encoder])
    attention = layers.Activation("softmax", name="attention")(attention)

    context = layers.Dot(axes=[2, 1], name="context")([attention, encoder])
    decoder_combined_context = layers.Concatenate()([context, decoder])

    output = layers.TimeDistributed(layers.Dense(LSTM_UNITS, activation="tanh"))(
        decoder_combined_context
    )
    output = layers.TimeDistributed(layers.Dense(output_vocab_size, activation="softmax"))(
        output
    )

    model = keras.Model(inputs=[encoder_input, decoder_input], outputs=output)
    model.compile(loss="categorical_crossentropy", optimizer="adam")
    return model


def run_seq2seq_inference(model, input_str: str, get_attention: bool = False) -> dict:
    """Performs greedy decoding of one input date string.

    Returns:
        (dict) `output_str` holds the converted date. `attention` holds the
        [1, OUTPUT_LENGTH, INPUT_LENGTH] attention weights when requested, else None.
    """
    encoder_input = encode_input_date_strings([input_str])
    decoder_input = np.zeros((1, OUTPUT_LENGTH), dtype=np.float32)
    decoder_input[0, 0] = START_CODE
    for i in range(1, OUTPUT_LENGTH):
        predict_out = model.predict([encoder_input, decoder_input], verbose=0)
        decoder_input[0, i] = np.argmax(predict_out[0, i - 1])

    final_predict_out = model.predict([encoder_input, decoder_input], verbose=0)
    decoder_final_output = int(np.argmax(final_predict_out[0, OUTPUT_LENGTH - 1]))

    output_str = "".join(OUTPUT_VOCAB[int(code)] for code in decoder_input[0, 1:])
    output_str += OUTPUT_VOCAB[decoder_final_output]

    attention = None
    if get_attention:
        attention_model = keras.Model(
            inputs=model.inputs, outputs=model.get_layer("attention").output
        )
        attention = attention_model.predict([encoder_input, decoder_input], verbose=0)

    return {"output_str": output_str, "attention": attention}
