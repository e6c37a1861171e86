# damage_capture/network/submission_client.py
"""Network module for submitting finalized batches to the records endpoint."""
import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import backoff
import requests

from damage_capture.config.settings import NetworkConfig, SessionConfig
from damage_capture.core.models import Record, SessionMetadata, ordered_letters
from damage_capture.utils.exceptions import (
    EmptyBatch,
    EndpointNotConfigured,
    RetryableSubmissionError,
    SubmissionFailed,
    SubmissionHTTPError,
    SubmissionRejected,
    SubmissionTimeout,
    SubmissionTransportError,
    ValidationError,
)

WIRE_REQUIRED_FIELDS = ('code', 'dateTime', 'user', 'shift')

def linear_backoff(unit: float = 1.0):
    """Wait generator for backoff: unit, 2*unit, 3*unit, ..."""
    # Advance past backoff's initial send(None)
    yield
    attempt = 1
    while True:
        yield unit * attempt
        attempt += 1

def format_record(record: Record, metadata: SessionMetadata) -> Dict[str, Any]:
    """Flatten a record into the shape the endpoint stores as one row."""
    shift = metadata.shift or record.shift
    return {
        'code': record.id,
        'categories': ', '.join(ordered_letters(record.categories)),
        'observation': record.observation,
        'dateTime': record.captured_at.strftime('%d/%m/%Y %H:%M'),
        'user': metadata.operator.strip() or SessionConfig.DEFAULT_USER,
        'shift': shift.value,
        'airline': metadata.airline,
        'signature': record.has_signature,
    }

def validate_wire_records(records: List[Dict[str, Any]]) -> None:
    """Raise ValidationError unless every wire record is complete."""
    if not isinstance(records, list):
        raise ValidationError("Invalid record format: expected a list")
    for record in records:
        missing = [f for f in WIRE_REQUIRED_FIELDS if not record.get(f)]
        if missing:
            raise ValidationError(
                f"Invalid record format for {record.get('code')!r}: missing {', '.join(missing)}"
            )
        if not isinstance(record.get('categories'), str) or \
                not isinstance(record.get('observation'), str):
            raise ValidationError(f"Invalid record format for {record['code']!r}")

@dataclass
class SubmissionResult:
    success: bool
    attempt: int
    records_count: int
    batch_id: str
    data: Any = None

class SubmissionClient:
    def __init__(self, server_url: str = NetworkConfig.SERVER_URL,
                 max_retries: int = NetworkConfig.MAX_RETRIES,
                 retry_backoff_unit: float = NetworkConfig.RETRY_BACKOFF_UNIT,
                 send_timeout: float = NetworkConfig.SEND_TIMEOUT,
                 probe_timeout: float = NetworkConfig.PROBE_TIMEOUT,
                 source_tag: str = NetworkConfig.SOURCE_TAG):
        """Initialize the submission client."""
        self.logger = logging.getLogger(__name__)
        self.server_url = server_url
        self.max_retries = max_retries
        self.retry_backoff_unit = retry_backoff_unit
        self.send_timeout = send_timeout
        self.probe_timeout = probe_timeout
        self.source_tag = source_tag
        self._initialize_health_metrics()

    def set_endpoint(self, url: str) -> None:
        self.server_url = url

    def _validate_url(self, url: str) -> None:
        """Validate the server URL format."""
        result = urlparse(url or "")
        if result.scheme not in ('http', 'https') or not result.netloc:
            raise EndpointNotConfigured(f"Submission endpoint is not configured correctly: {url!r}")

    def is_configured(self) -> bool:
        try:
            self._validate_url(self.server_url)
            return True
        except EndpointNotConfigured:
            return False

    def _initialize_health_metrics(self) -> None:
        """Initialize health monitoring metrics."""
        self.health_metrics = {
            'successful_sends': 0,
            'failed_sends': 0,
            'retry_attempts': 0,
            'last_successful_send': None,
            'last_error': None
        }
        self.metrics_lock = threading.Lock()

    def _post(self, payload: Dict[str, Any], timeout: float) -> requests.Response:
        """One POST; requests closes the socket when the timeout fires."""
        try:
            response = requests.post(
                self.server_url,
                data=payload,
                headers={'User-Agent': 'DamageCapture/1.0'},
                timeout=timeout
            )
        except requests.exceptions.Timeout as e:
            raise SubmissionTimeout(
                f"Timeout: submission took longer than {timeout:g}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise SubmissionTransportError(f"Connection error: {e}") from e

        if response.status_code >= 400:
            raise SubmissionHTTPError(response.status_code, response.reason or "")
        return response

    def _parse_body(self, response: requests.Response) -> Any:
        content_type = response.headers.get('Content-Type', '')
        if 'application/json' in content_type:
            try:
                result = response.json()
            except ValueError as e:
                raise SubmissionTransportError(f"Invalid JSON response: {e}") from e
        else:
            result = response.text

        if isinstance(result, dict) and result.get('error'):
            raise SubmissionRejected(str(result['error']))
        return result

    def format_records(self, records: Iterable[Record],
                       metadata: SessionMetadata) -> List[Dict[str, Any]]:
        wire = [format_record(r, metadata) for r in records]
        validate_wire_records(wire)
        return wire

    def send(self, records: Iterable[Record], metadata: SessionMetadata,
             batch_id: Optional[str] = None) -> Any:
        """
        Send a batch in a single request.

        Returns:
            The decoded response body

        Raises:
            EmptyBatch: nothing to send, no request made
            EndpointNotConfigured: endpoint URL is not usable, no request made
            RetryableSubmissionError: timeout, transport, HTTP or remote error
        """
        records = list(records)
        if not records:
            raise EmptyBatch("No records to submit")
        self._validate_url(self.server_url)

        wire = self.format_records(records, metadata)
        payload = {
            'action': 'addRecords',
            'records': json.dumps(wire, ensure_ascii=False),
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'source': self.source_tag,
        }
        if batch_id:
            payload['batchId'] = batch_id

        try:
            self.logger.info(f"Sending {len(wire)} records to {self.server_url}")
            result = self._parse_body(self._post(payload, self.send_timeout))
        except RetryableSubmissionError as e:
            self.logger.error(f"Error sending records: {e}")
            with self.metrics_lock:
                self.health_metrics['failed_sends'] += 1
                self.health_metrics['last_error'] = str(e)
            raise

        with self.metrics_lock:
            self.health_metrics['successful_sends'] += 1
            self.health_metrics['last_successful_send'] = time.time()
        self.logger.debug(f"Server response: {result}")
        return result

    def _on_backoff(self, details: Dict[str, Any]) -> None:
        with self.metrics_lock:
            self.health_metrics['retry_attempts'] += 1
        self.logger.warning(
            f"Attempt {details['tries']} failed: {details.get('exception')}; "
            f"retrying in {details['wait']:.1f}s"
        )

    def send_with_retry(self, records: Iterable[Record], metadata: SessionMetadata,
                        max_attempts: Optional[int] = None) -> SubmissionResult:
        """
        Send a batch, retrying retryable failures with linear backoff.

        Every attempt re-sends the full batch under the same batch id. The
        endpoint does not deduplicate on it yet, so a request that times out
        after the server committed it will be stored twice.

        Raises:
            SubmissionFailed: all attempts failed; wraps the last error
            EmptyBatch, EndpointNotConfigured, ValidationError: raised at once
        """
        records = list(records)
        if max_attempts is None:
            max_attempts = self.max_retries
        if max_attempts < 1:
            raise ValidationError(f"max_attempts must be at least 1, got {max_attempts}")
        batch_id = uuid.uuid4().hex
        tries = {'count': 0}

        def attempt():
            tries['count'] += 1
            return self.send(records, metadata, batch_id=batch_id)

        retrying = backoff.on_exception(
            linear_backoff,
            RetryableSubmissionError,
            max_tries=max_attempts,
            jitter=None,
            on_backoff=self._on_backoff,
            logger=None,
            unit=self.retry_backoff_unit,
        )(attempt)

        try:
            data = retrying()
        except RetryableSubmissionError as e:
            self.logger.error(f"Giving up on batch {batch_id} after {tries['count']} attempts")
            raise SubmissionFailed(tries['count'], e) from e

        self.logger.info(
            f"Batch {batch_id} delivered on attempt {tries['count']} ({len(records)} records)"
        )
        return SubmissionResult(
            success=True,
            attempt=tries['count'],
            records_count=len(records),
            batch_id=batch_id,
            data=data,
        )

    def ping(self) -> Dict[str, Any]:
        """Connectivity probe for diagnostics; never raises."""
        try:
            self._validate_url(self.server_url)
            response = self._post({
                'action': 'ping',
                'timestamp': datetime.now(timezone.utc).isoformat(),
            }, self.probe_timeout)
            return {'success': True, 'data': self._parse_body(response)}
        except (EndpointNotConfigured, RetryableSubmissionError) as e:
            self.logger.warning(f"Ping failed: {e}")
            return {'success': False, 'error': str(e)}

    def connection_info(self) -> Dict[str, Any]:
        return {
            'endpoint': self.server_url,
            'send_timeout': self.send_timeout,
            'probe_timeout': self.probe_timeout,
            'configured': self.is_configured(),
        }

    def get_health_status(self) -> Dict[str, Any]:
        """Get current health metrics."""
        with self.metrics_lock:
            return self.health_metrics.copy()
