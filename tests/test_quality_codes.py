import pytest

from episcore import CheckCategory, QualityCode
from episcore.internals.quality_codes import MAX_QUALITY_CODE


def test_quality_codes_are_ordered_from_illegal_to_valid():
    assert [int(c) for c in QualityCode] == list(range(1, 9))
    assert QualityCode.ILLEGAL < QualityCode.MISSING < QualityCode.VALID
    assert MAX_QUALITY_CODE == QualityCode.VALID


def test_every_quality_code_has_a_label():
    labels = [c.label for c in QualityCode]
    assert len(set(labels)) == len(labels)
    assert QualityCode.NOT_KNOWN.label == "explicitly not known"


@pytest.mark.parametrize(
    "category,scale,max_scaled_value",
    [
        (CheckCategory.FIELD, 1, 8),
        (CheckCategory.INTRA, 10, 80),
        (CheckCategory.INTER, 100, 800),
    ],
)
def test_category_scaling(category, scale, max_scaled_value):
    assert category.scale == scale
    assert category.max_scaled_value == max_scaled_value


def test_category_from_string():
    assert CheckCategory.from_string("intra") == CheckCategory.INTRA
    assert CheckCategory.from_string("INTER") == CheckCategory.INTER
    assert CheckCategory.from_string(CheckCategory.FIELD) == CheckCategory.FIELD

    with pytest.raises(ValueError, match="Unknown check category"):
        CheckCategory.from_string("record")
