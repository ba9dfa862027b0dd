"""Serialization of mapgraph entities."""

from .serialization import encode, decode, encode_values, decode_values, save_values, load_values

__all__ = ["encode", "decode", "encode_values", "decode_values", "save_values", "load_values"]
