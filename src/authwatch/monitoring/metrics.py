"""Monitoring - publish security event, anomaly and action counts to CloudWatch."""

import logging, os, threading
from datetime import datetime, timezone
from typing import Dict, List, Optional
from dataclasses import dataclass
from enum import Enum

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from authwatch.common.constants import MonitorDefaults
from authwatch.core.types import AnomalyType, SecurityActionType, SecurityEventType, Severity

logger = logging.getLogger(__name__)


class MetricType(str, Enum):
    SECURITY_EVENT = "security_event"
    ANOMALY = "location_anomaly"
    ANOMALY_RISK = "anomaly_risk_score"
    SECURITY_ACTION = "security_action"
    NOTIFICATION_FAILURE = "notification_failure"
    GEOLOCATION_FAILURE = "geolocation_failure"
    PIPELINE_ERROR = "pipeline_error"


@dataclass
class MetricPoint:
    metric_name: str
    value: float
    unit: str = "None"
    timestamp: Optional[datetime] = None
    dimensions: Optional[Dict[str, str]] = None
    
    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


class MetricsCollector:
    """Buffers metric points and publishes them to CloudWatch in batches."""
    
    DEFAULT_REGION = "us-east-1"
    DEFAULT_NAMESPACE = "AuthWatch"
    
    def __init__(self, namespace: Optional[str] = None, region: Optional[str] = None,
                 aws_profile: Optional[str] = None,
                 batch_size: int = MonitorDefaults.METRICS_BATCH_SIZE):
        self.namespace = namespace or os.environ.get("CLOUDWATCH_NAMESPACE", self.DEFAULT_NAMESPACE)
        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)
        self.batch_size = batch_size
        self.metric_buffer: List[MetricPoint] = []
        self._lock = threading.Lock()
        
        if aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            self.cloudwatch = session.client("cloudwatch", region_name=self.region)
        else:
            self.cloudwatch = boto3.client("cloudwatch", region_name=self.region)
        
        logger.info(f"Initialized MetricsCollector: namespace={self.namespace}")
    
    def record_metric(self, metric: MetricPoint) -> None:
        """Buffer a metric point; flushes once the batch is full."""
        with self._lock:
            self.metric_buffer.append(metric)
            full = len(self.metric_buffer) >= self.batch_size
        
        if full:
            self.flush()
    
    def record_security_event(self, event_type: SecurityEventType) -> None:
        self.record_metric(MetricPoint(
            metric_name=MetricType.SECURITY_EVENT.value,
            value=1.0,
            unit="Count",
            dimensions={"event_type": SecurityEventType(event_type).value},
        ))
    
    def record_anomaly(
        self,
        anomaly_type: AnomalyType,
        severity: Severity,
        risk_score: float,
    ) -> None:
        """Record one detected location anomaly and its risk score."""
        dimensions = {
            "anomaly_type": AnomalyType(anomaly_type).value,
            "severity": Severity(severity).value,
        }
        self.record_metric(MetricPoint(
            metric_name=MetricType.ANOMALY.value,
            value=1.0,
            unit="Count",
            dimensions=dimensions,
        ))
        self.record_metric(MetricPoint(
            metric_name=MetricType.ANOMALY_RISK.value,
            value=risk_score,
            unit="None",
            dimensions={"anomaly_type": dimensions["anomaly_type"]},
        ))
    
    def record_action(self, action_type: SecurityActionType, email_sent: bool) -> None:
        self.record_metric(MetricPoint(
            metric_name=MetricType.SECURITY_ACTION.value,
            value=1.0,
            unit="Count",
            dimensions={
                "action_type": SecurityActionType(action_type).value,
                "email_sent": str(email_sent).lower(),
            },
        ))
    
    def record_error(self, stage: str, error_type: str) -> None:
        """Record a swallowed pipeline error.
        
        Args:
            stage: Pipeline stage (request, failed_login, successful_login, ...)
            error_type: Exception class name
        """
        metric_name = (
            MetricType.GEOLOCATION_FAILURE.value
            if error_type == "GeolocationLookupError"
            else MetricType.PIPELINE_ERROR.value
        )
        self.record_metric(MetricPoint(
            metric_name=metric_name,
            value=1.0,
            unit="Count",
            dimensions={"stage": stage, "error_type": error_type},
        ))
    
    def flush(self) -> None:
        """Flush buffered metrics to CloudWatch.
        
        Raises:
            IOError: If CloudWatch write fails
        """
        with self._lock:
            pending = list(self.metric_buffer)
            self.metric_buffer.clear()
        
        if not pending:
            return
        
        metric_data = []
        for metric in pending:
            metric_dict = {
                "MetricName": metric.metric_name,
                "Value": metric.value,
                "Unit": metric.unit,
                "Timestamp": metric.timestamp,
            }
            
            if metric.dimensions:
                metric_dict["Dimensions"] = [
                    {"Name": k, "Value": str(v)}
                    for k, v in metric.dimensions.items()
                ]
            
            metric_data.append(metric_dict)
        
        try:
            # CloudWatch allows max 20 metrics per request
            for i in range(0, len(metric_data), 20):
                self.cloudwatch.put_metric_data(
                    Namespace=self.namespace,
                    MetricData=metric_data[i:i+20],
                )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish {len(pending)} metrics: {e}")
            raise IOError(f"CloudWatch write failed: {e}") from e
        
        logger.debug(f"Published {len(pending)} metrics to CloudWatch")
    
    def shutdown(self) -> None:
        """Flush remaining metrics on shutdown."""
        self.flush()
