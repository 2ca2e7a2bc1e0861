"""Cloud provider clients for otcmachine."""

from otcmachine.providers.openstack import OpenStackClient

__all__ = [
    "OpenStackClient",
]
