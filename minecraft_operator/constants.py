"""
Shared module to hold constant values for the operator
"""

# Parent resource identity
PARENT_GROUP = "cache.example.com"
PARENT_VERSION = "v1alpha1"
PARENT_API_VERSION = f"{PARENT_GROUP}/{PARENT_VERSION}"
PARENT_KIND = "Minecraft"

# The finalizer token that gates deletion of the parent until cleanup is done
FINALIZER_NAME = f"{PARENT_GROUP}/finalizer"

# Label keys stamped on every dependent resource
# More info: https://kubernetes.io/docs/concepts/overview/working-with-objects/common-labels/
LABEL_APP_NAME = "app.kubernetes.io/name"
LABEL_APP_VERSION = "app.kubernetes.io/version"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_INSTANCE_NAME = f"{PARENT_GROUP}/name"
LABEL_CONTAINER_TYPE = "containertype"

APP_NAME = "minecraft-operator"
MANAGED_BY = "MinecraftController"
CONTAINER_TYPE = "minecraft-server"

# Annotations on the workload and the network endpoint
RELOADER_ANNOTATION_NAME = "reloader.stakater.com/auto"
EXTERNAL_SERVER_NAME_ANNOTATION_NAME = "mc-router.itzg.me/externalServerName"

# Name used as the reporting component on emitted events
EVENT_SOURCE_COMPONENT = "minecraft-controller"

# Default namespace if none given
DEFAULT_NAMESPACE = "default"

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
