from .data.dataset import Dataset
from .api import fit, fit_chains, forecast
from .errors import ConfigurationError, NumericalError, SamplingDegeneracy
from .results import FitResult, ForecastResult
from .spec import MinnesotaPrior, ModelSpec, SamplerConfig
from .sv import VolatilitySpec

__all__ = [
    # Core API
    "Dataset",
    "MinnesotaPrior",
    "ModelSpec",
    "SamplerConfig",
    "VolatilitySpec",
    "fit",
    "fit_chains",
    "forecast",
    # Results
    "FitResult",
    "ForecastResult",
    # Errors
    "ConfigurationError",
    "NumericalError",
    "SamplingDegeneracy",
    # Metadata
    "__version__",
]

__version__ = "0.1.0"
