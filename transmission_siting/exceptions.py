# exceptions.py
# error taxonomy for route generation. every failure the caller can act on
# is a RouteError subclass with a stable `kind`; cancellation is a separate
# outcome and not a RouteError.


class RouteError(Exception):
    """base class for failures surfaced to the caller."""

    kind = "route_error"


class GeometryError(RouteError):
    """malformed or degenerate AOI / layer geometry."""

    kind = "geometry"


class EmptyAOIError(RouteError):
    """the AOI produced no traversable cell at the chosen resolution."""

    kind = "empty_aoi"


class InvalidEndpointError(RouteError):
    """origin or destination outside the AOI or on an impassable cell."""

    kind = "invalid_endpoint"

    def __init__(self, message, endpoint):
        super().__init__(message)
        self.endpoint = endpoint


class NoPathError(RouteError):
    """no traversable path connects origin and destination."""

    kind = "no_path"


class ParameterError(RouteError):
    """resolution, weights or other routing parameters out of range."""

    kind = "parameter"


class PostProcessError(RouteError):
    """the route violated an internal invariant after solving."""

    kind = "post_process"


class Cancelled(Exception):
    """the caller cancelled the computation."""
