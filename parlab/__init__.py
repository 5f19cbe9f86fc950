"""Image writers for PNG, JPEG, BMP, TGA and Radiance HDR, a zlib encoder and a stopwatch."""

__version__ = "0.1.0"

__all__ = [
    "deflate",
    "jpeg",
    "png",
    "simple_formats",
    "timer",
]