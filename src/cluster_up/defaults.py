"""Well-known names and versions used when bringing a cluster up."""

# Minimum Docker API version supported by cluster up
MIN_SUPPORTED_DOCKER_VERSION = "1.22"

# Insecure registry CIDR the host Docker daemon must be configured with
INSECURE_REGISTRY_ADDRESS = "172.30.0.0/16"

# Name of the origin container, used to detect a previous cluster
CONTAINER_NAME_ORIGIN = "origin"

# Default prefix for images (like: 'registry.foo.bar/openshift')
DEFAULT_IMAGE_PREFIX = "openshift"

ORIGIN_IMAGE_NAME = "origin"

DEFAULT_IMAGE_TAG = "latest"

# Cluster IP of the integrated registry service
REGISTRY_SERVICE_CLUSTER_IP = "172.30.1.1"


def origin_image(prefix: str = DEFAULT_IMAGE_PREFIX, tag: str = DEFAULT_IMAGE_TAG) -> str:
    """Return the origin image pull spec."""
    return f"{prefix.rstrip('/')}/{ORIGIN_IMAGE_NAME}:{tag}"
