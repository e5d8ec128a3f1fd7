"""Parsing and classification of operation identifiers."""

import re
from dataclasses import dataclass

HTTP_VERB_PREFIXES = ("GET ", "POST ", "PUT ", "DELETE ")

# package.Class.method, package optional
_METHOD_PATTERN = re.compile(
    r"^(?P<package>[A-Za-z0-9_.]+\.)?(?P<cls>[A-Za-z0-9_$]+)\.(?P<method>[A-Za-z0-9_$<>]+)$"
)
_CLASS_ONLY_PATTERN = re.compile(r"^[A-Za-z0-9_$]+$")

_OPERATION_TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "DATABASE",
        ("repository", "dao", "jpa", "findall", "findby", "save", "delete", "update", "query"),
    ),
    (
        "HTTP",
        ("http", "rest", "client", "exchange", "getfor", "postfor", "webclient", "feign"),
    ),
    ("CONTROLLER", ("controller",)),
    ("SERVICE", ("service",)),
    ("FILE_IO", ("file", "upload", "download", "read", "write")),
)


@dataclass
class MethodInfo:
    """Class/method parts of an operation identifier."""

    package_name: str | None = None
    class_name: str | None = None
    method_name: str | None = None
    full_class_name: str | None = None

    @property
    def is_valid(self) -> bool:
        return bool(self.class_name)


def extract_method_info(operation: str) -> MethodInfo:
    """Splits an operation into package, class and method.

    HTTP endpoints ("GET /orders") are reported with class ``HTTP`` and the
    whole operation as method. Identifiers that do not look like code paths
    keep only the method part and are not valid.
    """
    info = MethodInfo()

    if operation.startswith(HTTP_VERB_PREFIXES):
        info.class_name = "HTTP"
        info.method_name = operation
        return info

    match = _METHOD_PATTERN.match(operation)
    if match:
        package = match.group("package")
        info.class_name = match.group("cls")
        info.method_name = match.group("method")
        if package:
            info.package_name = package[:-1]
            info.full_class_name = f"{info.package_name}.{info.class_name}"
        else:
            info.full_class_name = info.class_name
    elif _CLASS_ONLY_PATTERN.match(operation):
        info.class_name = operation
        info.full_class_name = operation
    else:
        info.method_name = operation
        return info

    # Inner classes are displayed by their own name
    if "$" in info.class_name:
        parts = [p for p in info.class_name.split("$") if p]
        if parts:
            info.class_name = parts[-1]

    return info


def build_detailed_operation(operation: str, info: MethodInfo) -> str:
    """Builds the displayed hotspot identifier.

    The original operation is appended in parentheses when the
    class/method rendering differs from it.
    """
    if not info.is_valid:
        return operation

    detailed = info.full_class_name or info.class_name or ""
    if info.method_name:
        if detailed:
            detailed += "."
        detailed += info.method_name

    if detailed != operation and "CGLIB" not in operation:
        detailed += f" ({operation})"
    return detailed


def classify_operation_type(operation: str) -> str:
    """Coarse operation category from keywords in the identifier."""
    op = operation.lower()
    for category, keywords in _OPERATION_TYPE_KEYWORDS:
        if any(keyword in op for keyword in keywords):
            return category
    return "OTHER"
