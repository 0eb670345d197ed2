from project_factory.models.generated_resource import GeneratedResource  # noqa: F401
from project_factory.models.resource_details import ResourceDetails  # noqa: F401
from project_factory.models.resource_activity import ResourceActivity  # noqa: F401
