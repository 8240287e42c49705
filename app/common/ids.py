import secrets


def generate_id(prefix: str) -> str:
    """Generate a prefixed identifier such as CRS_1F3A9B0C2D4E5F60"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


def strip_mongo_id(doc: dict) -> dict:
    if doc is not None:
        doc.pop("_id", None)
    return doc


def strip_mongo_ids(docs: list) -> list:
    return [strip_mongo_id(doc) for doc in docs]
