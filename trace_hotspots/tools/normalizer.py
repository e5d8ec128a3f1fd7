"""Operation name normalization.

Dynamic-proxy instrumentation reports the same logical method under
decorated names, e.g. ``com.acme.OrderService$$EnhancerBySpringCGLIB$$1a2b3c``
for the proxy class or ``com.acme.OrderService.CGLIB$findAll$0`` for an
intercepted method. Normalizing strips those decorations so proxied and
direct calls end up in the same group.
"""

PROXY_SUFFIX_MARKER = "$$EnhancerBySpringCGLIB$$"
INTERCEPTION_PREFIX_MARKER = "CGLIB$"
GENERATED_TOKEN_PREFIX = "$$"

_PATH_SEPARATORS = "./"


def normalize_operation_name(operation: str | None) -> str:
    """Strips proxy-wrapper decorations from an operation identifier.

    An interception marker directly after a separator drops that whole
    segment. A marker embedded in a generated class token such as
    ``OrderService$$FastClassBySpringCGLIB$$1a2b`` drops the token and
    keeps the class name, so proxies of different classes stay apart.

    Args:
        operation: Raw operation identifier. None is treated as empty.

    Returns:
        The identifier without the proxy suffix and without the intercepted
        method segment, or the input unchanged when no marker is present.
    """
    if not operation:
        return ""

    # Everything from the proxy marker on is the generated class token
    proxy_index = operation.find(PROXY_SUFFIX_MARKER)
    if proxy_index >= 0:
        operation = operation[:proxy_index]

    marker_index = operation.find(INTERCEPTION_PREFIX_MARKER)
    if marker_index > 0:
        if operation[marker_index - 1] in _PATH_SEPARATORS:
            cut = marker_index - 1
        else:
            cut = operation.rfind(GENERATED_TOKEN_PREFIX, 0, marker_index)
        operation = operation[: cut if cut > 0 else marker_index]

    return operation
