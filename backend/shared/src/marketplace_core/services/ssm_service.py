"""SSM Parameter Store access for payment gateway credentials.

Gateway credentials live under one path per gateway, e.g.
``/marketplace/prod/mobbex/``. A whole path is read in a single paginated
``GetParametersByPath`` call and cached per process, since Lambda
containers are reused across invocations.
"""

import logging
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class SSMServiceError(Exception):
    """Raised when SSM parameters cannot be read."""


class SSMService:
    """Cached reader for SecureString parameters.

    Usage:
        ssm = SSMService()
        mobbex = ssm.get_parameters_by_path("/marketplace/dev/mobbex")
        api_key = mobbex.get("api_key")  # None when not stored
    """

    def __init__(self, client=None) -> None:
        self._client = client or boto3.client("ssm")
        self._paths: dict[str, dict[str, str]] = {}

    @staticmethod
    def _raise_for(error: ClientError, target: str) -> None:
        code = error.response.get("Error", {}).get("Code", "Unknown")
        if code == "AccessDeniedException":
            raise SSMServiceError(
                f"Access denied to {target}. Check IAM permissions for ssm:GetParametersByPath."
            ) from error
        raise SSMServiceError(f"Failed to read {target}: {error}") from error

    def get_parameters_by_path(self, path: str, *, use_cache: bool = True) -> dict[str, str]:
        """Read every decrypted parameter directly under ``path``.

        Returns:
            Mapping of parameter leaf name (``access_token``) to value; empty
            when nothing is stored under the path
        """
        path = path.rstrip("/")
        if use_cache and path in self._paths:
            logger.debug("SSM cache hit for %s", path)
            return self._paths[path]

        logger.info("Fetching SSM parameters under %s", path)
        values: dict[str, str] = {}
        try:
            paginator = self._client.get_paginator("get_parameters_by_path")
            for page in paginator.paginate(Path=path, WithDecryption=True, Recursive=False):
                for parameter in page.get("Parameters", []):
                    values[parameter["Name"].rsplit("/", 1)[-1]] = parameter["Value"]
        except ClientError as e:
            self._raise_for(e, path)

        self._paths[path] = values
        return values

    def clear_cache(self) -> None:
        self._paths.clear()
        logger.info("SSM parameter cache cleared")


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance."""
    return SSMService()
