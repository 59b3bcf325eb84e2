"""Convert XYZ point clouds into multi-model MagicaVoxel (.vox) scenes."""

from .pipeline import DEFAULT_MAX_MODEL_SIZE, ConversionResult, ConvertOptions, convert

__all__ = ["DEFAULT_MAX_MODEL_SIZE", "ConversionResult", "ConvertOptions", "convert"]
