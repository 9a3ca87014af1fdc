SCHEDULER_NAME = "yunikorn"
AUTOGEN_APP_PREFIX = "yunikorn"
DEFAULT_NAMESPACE = "default"

DOMAIN = "yunikorn.apache.org/"

LABEL_APP = "app"
LABEL_APP_VALUE = "yunikorn"

CANONICAL_LABEL_APPLICATION_ID = DOMAIN + "app-id"
CANONICAL_LABEL_QUEUE_NAME = DOMAIN + "queue"
LABEL_APPLICATION_ID = "applicationId"
LABEL_QUEUE_NAME = "queue"

ANNOTATION_USER_INFO = DOMAIN + "user.info"
ANNOTATION_ALLOW_PREEMPTION = DOMAIN + "allow-preemption"
ANNOTATION_ENABLE_YUNIKORN = DOMAIN + "namespace.enableYuniKorn"
ANNOTATION_GENERATE_APP_ID = DOMAIN + "namespace.generateAppId"

CONFIG_MAP_NAMES = ("yunikorn-configs", "yunikorn-defaults")
CONFIG_MAP_QUEUES_KEY = "queues.yaml"
VALIDATE_CONF_PATH = "/ws/v1/validate-conf"
