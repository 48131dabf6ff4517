"""Application services orchestrating install and removal use cases."""

from upkg.core.services.doctor_service import DoctorService
from upkg.core.services.install_service import InstallService
from upkg.core.services.remove_service import RemoveService

__all__: list[str] = [
    "DoctorService",
    "InstallService",
    "RemoveService",
]
