from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from episcore.internals.quality_codes import CheckCategory, QualityCode

from .check_creator import CheckCreator
from .code_level_creator import CodeLevelCreator
from .code_level_library import (
    And,
    ColumnComparisonLevel,
    CustomLevel,
    ElseLevel,
    Not,
    NullLevel,
    Or,
    RangeLevel,
    ThresholdLevel,
    ValuesLevel,
)

QualityCodeLike = Union[QualityCode, int]
RuleType = Union[CodeLevelCreator, Dict[str, Any]]

# (sex, completed gestational weeks) -> inclusive plausible birth weight band in
# grams. Centile data for Scottish singleton births (Bonellie et al.); weeks
# missing from the table are unconstrained.
BIRTH_WEIGHT_CENTILE_BANDS: Dict[Tuple[int, int], Tuple[int, int]] = {
    (1, 24): (326, 944),
    (1, 25): (379, 1080),
    (1, 26): (430, 1207),
    (1, 42): (2935, 4748),
    (1, 43): (2976, 4781),
    (2, 24): (270, 916),
    (2, 25): (320, 1044),
    (2, 26): (382, 1208),
    (2, 42): (2935, 4748),
    (2, 43): (2909, 4560),
}


def rule_to_code_level(col_name: str, rule: RuleType) -> CodeLevelCreator:
    """Build a code level on `col_name` from one declarative rule.

    A rule is either a ready-made `CodeLevelCreator` or a dict with a `code` and
    exactly one of:

    - `values`: a literal or list of literals, e.g. `{"values": [9, "Z"], "code": 5}`
    - `range`: an inclusive `[lower, upper]` pair; `None` leaves a side open
    - `below` / `above`: a strict threshold
    - `sql_condition`: free SQL, see `CustomLevel`
    """
    if isinstance(rule, CodeLevelCreator):
        return rule
    if not isinstance(rule, Mapping):
        raise TypeError(
            f"Rule for column '{col_name}' must be a dict or CodeLevelCreator, "
            f"got {type(rule)} [{rule}]"
        )
    rule = dict(rule)
    if "code" not in rule:
        raise ValueError(f"Rule {rule} for column '{col_name}' has no 'code'")
    code = rule.pop("code")
    label = rule.pop("label", None)
    if len(rule) != 1:
        raise ValueError(
            f"Rule for column '{col_name}' must have exactly one condition key, "
            f"got {sorted(rule)}"
        )
    ((kind, value),) = rule.items()
    level: CodeLevelCreator
    if kind == "values":
        level = ValuesLevel(col_name, value, code)
    elif kind == "range":
        lower, upper = value
        level = RangeLevel(col_name, lower, upper, code)
    elif kind == "below":
        level = ThresholdLevel(col_name, "<", value, code)
    elif kind == "above":
        level = ThresholdLevel(col_name, ">", value, code)
    elif kind == "sql_condition":
        level = CustomLevel(value, code, input_columns=[col_name])
    else:
        raise ValueError(f"Unknown rule kind '{kind}' for column '{col_name}'")
    if label is not None:
        level.configure(label=label)
    return level


class FieldCheck(CheckCreator):
    def __init__(
        self,
        col_name: str,
        rules: Sequence[RuleType] = (),
        else_code: QualityCodeLike = QualityCode.ILLEGAL,
        null_code: QualityCodeLike = QualityCode.MISSING,
        name: Optional[str] = None,
    ):
        """A field-level check: the value of a single field against its rule table

        Nulls are scored first (default `QualityCode.MISSING`), then each rule is
        tried in order, then `else_code`.

        Args:
            col_name (str): Input column name
            rules (list): Declarative rules, see `rule_to_code_level`
            else_code (QualityCode | int): Code for values matching no rule.
                Defaults to `QualityCode.ILLEGAL`.
            null_code (QualityCode | int): Code for NULL values
            name (str, optional): Check name. Defaults to `col_name`, giving an
                output column `dq_field_<col_name>`
        """
        self.col_name = col_name
        self.rules = list(rules)
        self.else_code = QualityCode(else_code)
        self.null_code = QualityCode(null_code)
        super().__init__(name or col_name, CheckCategory.FIELD)

    def create_code_levels(self) -> List[CodeLevelCreator]:
        return [
            NullLevel(self.col_name, self.null_code),
            *[rule_to_code_level(self.col_name, r) for r in self.rules],
            ElseLevel(self.else_code),
        ]

    def create_description(self) -> str:
        return f"Field value check of {self.col_name}"


class ConditionalFieldCheck(CheckCreator):
    def __init__(
        self,
        col_name: str,
        governing_col_name: str,
        slot: int,
        rules: Sequence[RuleType] = (),
        else_code: QualityCodeLike = QualityCode.ILLEGAL,
        max_count: int = 6,
        name: Optional[str] = None,
    ):
        """An intra-record check of a field whose presence depends on a count

        e.g. the birth weight of a second baby is only expected when the number of
        babies is at least two.

        With the governing count a real count (`0..max_count`) the field is
        expected iff count >= `slot`. A blank field where none is expected scores
        8 and a populated one scores 1. Any other blank scores 3, including
        blanks where the count is unknown (null, a not-known sentinel, out of
        range). Populated values are then judged by `rules` and `else_code`.

        Args:
            col_name (str): The conditional field
            governing_col_name (str): The count deciding whether it is expected
            slot (int): The 1-based position the field describes
            rules (list): Declarative value rules, see `rule_to_code_level`
            else_code (QualityCode | int): Code for populated values matching no
                rule
            max_count (int): Largest value of the governing column that is a real
                count rather than a sentinel
            name (str, optional): Check name. Defaults to `col_name`
        """
        if slot < 1:
            raise ValueError(f"'slot' must be 1 or more, got {slot}")
        self.col_name = col_name
        self.governing_col_name = governing_col_name
        self.slot = slot
        self.rules = list(rules)
        self.else_code = QualityCode(else_code)
        self.max_count = max_count
        super().__init__(name or col_name, CheckCategory.INTRA)

    def _not_expected(self) -> CodeLevelCreator:
        return And(
            RangeLevel(self.governing_col_name, 0, self.max_count),
            ThresholdLevel(self.governing_col_name, "<", self.slot),
        )

    def create_code_levels(self) -> List[CodeLevelCreator]:
        col = self.col_name
        return [
            And(
                self._not_expected(),
                NullLevel(col),
                quality_code=QualityCode.VALID,
            ).configure(label=f"{col} blank and not expected"),
            self._not_expected().configure(
                quality_code=QualityCode.ILLEGAL,
                label=f"{col} populated but not expected",
            ),
            NullLevel(col, QualityCode.MISSING),
            *[rule_to_code_level(col, r) for r in self.rules],
            ElseLevel(self.else_code),
        ]

    def create_description(self) -> str:
        return (
            f"Check of {self.col_name}, expected when "
            f"{self.governing_col_name} >= {self.slot}"
        )


class BirthWeightPlausibilityCheck(CheckCreator):
    def __init__(
        self,
        birth_status_col_name: str,
        gestation_col_name: str,
        sex_col_name: str,
        birth_weight_col_name: str,
        name: str = "realistic_baby_weight",
        centile_bands: Mapping[Tuple[int, int], Tuple[int, int]] = None,
        max_weight: int = 7000,
    ):
        """Plausibility of a birth weight given birth status, gestation and sex

        Scores 3 if any input is null or birth status, sex or gestation fall
        outside their legal ranges; 8 for any non-live birth; 7 for weights above
        `max_weight`; 2 for weights outside the centile band tabulated for the
        (sex, gestational week); otherwise 8. Weeks absent from the table are not
        constrained.
        """
        self.birth_status_col_name = birth_status_col_name
        self.gestation_col_name = gestation_col_name
        self.sex_col_name = sex_col_name
        self.birth_weight_col_name = birth_weight_col_name
        self.centile_bands = dict(
            BIRTH_WEIGHT_CENTILE_BANDS if centile_bands is None else centile_bands
        )
        self.max_weight = max_weight
        super().__init__(name, CheckCategory.INTRA)

    def create_code_levels(self) -> List[CodeLevelCreator]:
        status = self.birth_status_col_name
        gestation = self.gestation_col_name
        sex = self.sex_col_name
        weight = self.birth_weight_col_name

        band_levels: List[CodeLevelCreator] = [
            And(
                ValuesLevel(sex, band_sex, QualityCode.INFEASIBLE),
                ValuesLevel(gestation, week, QualityCode.INFEASIBLE),
                Not(RangeLevel(weight, lower, upper)),
                quality_code=QualityCode.INFEASIBLE,
            ).configure(
                label=f"{weight} outside [{lower}, {upper}] for sex {band_sex} "
                f"at {week} weeks"
            )
            for (band_sex, week), (lower, upper) in sorted(self.centile_bands.items())
        ]

        return [
            Or(
                NullLevel(status),
                NullLevel(gestation),
                NullLevel(sex),
                NullLevel(weight),
                quality_code=QualityCode.MISSING,
            ),
            Or(
                Not(RangeLevel(status, 1, 4)),
                Not(RangeLevel(sex, 1, 2)),
                ThresholdLevel(gestation, ">", 49),
                quality_code=QualityCode.MISSING,
            ),
            Not(ValuesLevel(status, 1), quality_code=QualityCode.VALID).configure(
                label="not a live birth"
            ),
            ThresholdLevel(weight, ">", self.max_weight, QualityCode.DOUBTFUL),
            *band_levels,
            ElseLevel(QualityCode.VALID),
        ]

    def create_description(self) -> str:
        return (
            f"Plausibility of {self.birth_weight_col_name} given "
            f"{self.gestation_col_name} and {self.sex_col_name}"
        )


class EpisodeDatesCheck(CheckCreator):
    def __init__(
        self,
        start_col_name: str = "epistart",
        end_col_name: str = "epiend",
        name: str = "episode_dates",
    ):
        """Episode end must not precede episode start. Either date missing
        scores 3."""
        self.start_col_name = start_col_name
        self.end_col_name = end_col_name
        super().__init__(name, CheckCategory.INTRA)

    def create_code_levels(self) -> List[CodeLevelCreator]:
        return [
            Or(
                NullLevel(self.start_col_name),
                NullLevel(self.end_col_name),
                quality_code=QualityCode.MISSING,
            ),
            ColumnComparisonLevel(
                self.end_col_name, "<", self.start_col_name, QualityCode.ILLEGAL
            ),
            ElseLevel(QualityCode.VALID),
        ]


class IntervalCheck(CheckCreator):
    def __init__(
        self,
        weeks_col_name: str = "weeks_since_previous",
        outcome_col_name: Optional[str] = "all_live_births",
        name: str = "interval",
        doubtful_weeks: Tuple[int, int] = (23, 25),
    ):
        """Weeks since the entity's previous occurrence.

        Applies only when `outcome_col_name` is true (e.g. every expected birth
        was live); otherwise, and when there is no previous occurrence, scores 8.
        Intervals within `doubtful_weeks` score 7, shorter intervals 2.
        """
        self.weeks_col_name = weeks_col_name
        self.outcome_col_name = outcome_col_name
        self.doubtful_weeks = doubtful_weeks
        super().__init__(name, CheckCategory.INTER)

    def create_code_levels(self) -> List[CodeLevelCreator]:
        weeks = self.weeks_col_name
        lower, upper = self.doubtful_weeks
        not_applicable: List[CodeLevelCreator] = [NullLevel(weeks)]
        if self.outcome_col_name is not None:
            not_applicable.insert(
                0,
                CustomLevel(
                    f"NOT coalesce({self.outcome_col_name}, FALSE)",
                    input_columns=[self.outcome_col_name],
                    label=f"{self.outcome_col_name} is not true",
                ),
            )
        return [
            Or(*not_applicable, quality_code=QualityCode.VALID),
            RangeLevel(weeks, lower, upper, QualityCode.DOUBTFUL),
            ThresholdLevel(weeks, "<", lower, QualityCode.INFEASIBLE),
            ElseLevel(QualityCode.VALID),
        ]

    def create_description(self) -> str:
        return "Interval since the previous occurrence for the same entity"


class DuplicateCheck(CheckCreator):
    def __init__(
        self, group_size_col_name: str = "group_size", name: str = "is_duplicate"
    ):
        """Records in a duplicate group of more than one member score 1."""
        self.group_size_col_name = group_size_col_name
        super().__init__(name, CheckCategory.INTER)

    def create_code_levels(self) -> List[CodeLevelCreator]:
        return [
            ThresholdLevel(self.group_size_col_name, ">", 1, QualityCode.ILLEGAL),
            ElseLevel(QualityCode.VALID),
        ]

    def create_description(self) -> str:
        return "Membership of a duplicate group"


class CustomCheck(CheckCreator):
    def __init__(
        self,
        name: str,
        category: Union[CheckCategory, str],
        code_levels: List[Union[CodeLevelCreator, Dict[str, Any]]],
        description: Optional[str] = None,
    ):
        """A check authored directly from code levels, e.g. one read back from a
        settings dictionary.

        Args:
            name (str): Check name; the output column is `dq_<category>_<name>`
            category (CheckCategory | str): 'field', 'intra' or 'inter'
            code_levels (list): `CodeLevelCreator`s or level dicts, the last of
                which must be an else level
            description (str, optional): Human readable description
        """
        self.code_levels = [CustomLevel._convert_to_creator(cl) for cl in code_levels]
        self.description = description
        super().__init__(name, category)

    def create_code_levels(self) -> List[CodeLevelCreator]:
        return self.code_levels

    def create_description(self) -> str:
        if self.description is not None:
            return self.description
        return super().create_description()

    @staticmethod
    def _convert_to_creator(
        check: Union[CheckCreator, Dict[str, Any]],
    ) -> CheckCreator:
        if isinstance(check, CheckCreator):
            return check
        if isinstance(check, Mapping):
            check_dict = dict(check)
            check_dict.pop("output_column_name", None)
            return CustomCheck(**check_dict)
        raise ValueError(
            "`checks` entries must be `dict` or `CheckCreator`, "
            f"but found type {type(check)} for entry {check}"
        )
