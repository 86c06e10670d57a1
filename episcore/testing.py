from episcore.internals.testing import code_level_applies, quality_code

__all__ = ["code_level_applies", "quality_code"]
