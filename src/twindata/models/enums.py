from enum import StrEnum


class JobApplicationStatus(StrEnum):
    APLICADO = "aplicado"
    ENTREVISTA = "entrevista"
    ESPERANDO = "esperando"
    RECHAZADO = "rechazado"
    ACEPTADO = "aceptado"


class SearchMode(StrEnum):
    FULL_TEXT = "full_text"
    SEMANTIC = "semantic"
    VECTOR = "vector"
    HYBRID = "hybrid"


class FilterOperator(StrEnum):
    EQ = "eq"
    CONTAINS = "contains"
    GTE = "gte"
    LTE = "lte"


class RecordEventType(StrEnum):
    CREATED = "record_created"
    UPDATED = "record_updated"
    DELETED = "record_deleted"
