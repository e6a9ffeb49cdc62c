import enum


class CaseInsensitiveEnum(str, enum.Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


class ColumnKind(str, enum.Enum):
    text_wildcard = "TextWildcard"
    numeric_comparison = "NumericComparison"


class SourceRelation(str, enum.Enum):
    run = "run"
    sample = "sample"
    fastq = "fastq"


class CompareOp(str, enum.Enum):
    WILDCARD_EQUALS = "LIKE"
    EQUALS = "="
    GREATER_EQUAL = ">="
    LESS_EQUAL = "<="


class WarningKind(str, enum.Enum):
    malformed_clause = "MalformedClause"
    unknown_column = "UnknownColumn"
    unsupported_operator = "UnsupportedOperator"
    not_a_number = "NotANumber"
    invalid_limit = "InvalidLimit"


class OutputFormat(CaseInsensitiveEnum):
    json = "json"
    csv = "csv"
    tsv = "tsv"
