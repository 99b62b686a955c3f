from contenant.runtime.docker import DockerRuntime
from contenant.runtime.runtime import ContainerRuntime, get_runtime, reset_runtime

__all__ = ["ContainerRuntime", "DockerRuntime", "get_runtime", "reset_runtime"]
