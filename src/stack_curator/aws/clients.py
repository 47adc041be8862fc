"""AWS session and client management."""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

import boto3
import botocore.session
from botocore.credentials import RefreshableCredentials

from stack_curator.aws.autoscaling import AutoScalingService
from stack_curator.aws.base import remote_call
from stack_curator.aws.compute import EC2Compute
from stack_curator.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# STS rejects shorter role sessions
MIN_SESSION_DURATION = 900


def _session_with_credentials(credentials: RefreshableCredentials,
                              region: Optional[str]) -> boto3.Session:
    """boto3 session whose credential chain is replaced by ``credentials``.

    botocore exposes no public setter for an already built credential object,
    so the resolved credentials slot of a fresh botocore session is filled in.
    """
    botocore_session = botocore.session.get_session()
    botocore_session._credentials = credentials
    return boto3.Session(botocore_session=botocore_session, region_name=region)


class AWSClientManager:
    """Session and client cache for a single curator run.

    When a role ARN is given, the role is assumed through STS and the
    temporary credentials are refreshed automatically before they expire,
    so runs longer than one session duration keep working.
    """

    def __init__(self, region: Optional[str] = None, role_arn: Optional[str] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.region = region or self.settings.aws_region
        self.role_arn = role_arn
        self.endpoint_url = self.settings.aws_endpoint_url
        self._clients: Dict[str, Any] = {}
        self._session: Optional[boto3.Session] = None

        logger.info("Initializing AWSClientManager")
        logger.info(f"  Region: {self.region or 'default chain'}")
        logger.info(f"  Role: {self.role_arn or 'none'}")
        if self.endpoint_url:
            logger.info(f"  Endpoint: {self.endpoint_url}")

    @property
    def session_duration(self) -> int:
        """Assumed role session duration in seconds (twice the default wait)."""
        return max(MIN_SESSION_DURATION, int(2 * self.settings.wait_max_duration))

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> boto3.Session:
        base_session = boto3.Session(region_name=self.region)
        if not self.role_arn:
            return base_session

        sts_client = base_session.client('sts', **self._client_kwargs(base_session))
        session_name = f"{self.settings.role_session_prefix}-{uuid.uuid4()}"

        def refresh() -> Dict[str, str]:
            with remote_call('AssumeRole'):
                response = sts_client.assume_role(
                    RoleArn=self.role_arn,
                    RoleSessionName=session_name,
                    DurationSeconds=self.session_duration,
                )
            credentials = response['Credentials']
            expiry = credentials['Expiration']
            if isinstance(expiry, datetime):
                expiry = expiry.isoformat()
            logger.debug(f"Assumed role {self.role_arn} until {expiry}")
            return {
                'access_key': credentials['AccessKeyId'],
                'secret_key': credentials['SecretAccessKey'],
                'token': credentials['SessionToken'],
                'expiry_time': expiry,
            }

        # Fail early on a bad role rather than on the first EC2 call
        initial = refresh()

        credentials = RefreshableCredentials.create_from_metadata(
            metadata=initial,
            refresh_using=refresh,
            method='sts-assume-role',
        )
        logger.info(f"Assumed role {self.role_arn} as session {session_name}")
        return _session_with_credentials(credentials, self.region or base_session.region_name)

    def _client_kwargs(self, session: boto3.Session) -> Dict[str, Any]:
        client_kwargs = {}
        if session.region_name:
            client_kwargs['region_name'] = session.region_name
        if self.endpoint_url:
            client_kwargs['endpoint_url'] = self.endpoint_url
        return client_kwargs

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        if service_name in self._clients:
            return self._clients[service_name]

        with remote_call('CreateClient'):
            session = self.session
            client = session.client(service_name, **self._client_kwargs(session))
        self._clients[service_name] = client
        logger.debug(f"Created {service_name} client")
        return client

    def compute(self) -> EC2Compute:
        """EC2 collaborator bound to this session."""
        return EC2Compute(self.get_client('ec2'))

    def autoscaling(self) -> AutoScalingService:
        """Auto Scaling collaborator bound to this session."""
        return AutoScalingService(self.get_client('autoscaling'))

    def clear_clients(self):
        """Clear all cached clients."""
        self._clients.clear()
        logger.debug("Cleared all AWS clients")
