"""Exception types raised by cityscene."""


class CitySceneError(Exception):
    """Base class for all cityscene errors."""


class InputError(CitySceneError, ValueError):
    """Input rejected before any state was touched."""


class DegenerateRegionError(InputError):
    """Bounding region with zero width/height or non-finite edges."""


class MeshInputError(InputError):
    """Mesh text is missing or empty."""


class MeshParseError(CitySceneError, ValueError):
    """Mesh text parsed, but yielded no usable geometry."""


class ViewerDisposedError(CitySceneError, RuntimeError):
    """Operation attempted on a viewer after ``dispose()``."""


class ResourceError(CitySceneError, RuntimeError):
    """Release of a resource handle that is not live."""


class RequestTimeoutError(CitySceneError, TimeoutError):
    """No response arrived on a request channel before the deadline."""
