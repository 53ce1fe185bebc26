# least-cost corridor routing for transmission line siting.

from transmission_siting.cancellation import CancellationToken
from transmission_siting.config import (
    DEFAULT_WEIGHT_PROFILES,
    RoutingConfig,
    WeightProfile,
    load_config,
    load_weight_profiles,
)
from transmission_siting.exceptions import (
    Cancelled,
    EmptyAOIError,
    GeometryError,
    InvalidEndpointError,
    NoPathError,
    ParameterError,
    PostProcessError,
    RouteError,
)
from transmission_siting.models import (
    AnalyticsReport,
    AreaOfInterest,
    CandidateRoute,
    LayerFeature,
    LayerKind,
    PointKind,
    RoutePoint,
    RoutingLayers,
)
from transmission_siting.project import RoutingProject
from transmission_siting.router import RouteOutcome, RouteStatus, generate_route, prepare_cost_surface

__version__ = "0.1.0"
