"""topology.py — Declarative service topology and CloudFormation rendering.

Each resource declares the resources it must be initialized after. The
declared graph is checked against the service's ordering constraints (the
access log group exists before the stage goes live, the certificate is
issued before the custom domain, and so on) and rendered as CloudFormation
``DependsOn`` so the provisioning engine follows the same order.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from typing import Any, Dict, List, Tuple

from movies_api import config
from movies_api.access_log import ACCESS_LOG_FORMAT
from movies_api.domain import DEFAULT_STAGE, Certificate, DomainBinding
from movies_api.errors import TopologyError
from movies_api.permissions import SecurityBoundary, log_group_arn, table_arn
from movies_api.schema import TABLE_DEFINITION

__all__ = [
    "Component",
    "REQUIRED_ORDER",
    "ServiceTopology",
    "TopologySettings",
]

# (earlier, later): ``earlier`` must be initialized before ``later``.
REQUIRED_ORDER: Tuple[Tuple[str, str], ...] = (
    ("MoviesTable", "PutMovieRole"),
    ("FunctionLogGroup", "PutMovieRole"),
    ("PutMovieRole", "PutMovieFunction"),
    ("PutMovieFunction", "PutMovieIntegration"),
    ("PutMovieIntegration", "PutMovieRoute"),
    ("AccessLogGroup", "DefaultStage"),
    ("PutMovieRoute", "DefaultStage"),
    ("ApiCertificate", "ApiDomainName"),
    ("ApiDomainName", "ApiMapping"),
    ("DefaultStage", "ApiMapping"),
    ("ApiDomainName", "DnsRecord"),
)

_LAMBDA_HANDLER = "movies_api.lambda_function.lambda_handler"
_LAMBDA_RUNTIME = "python3.12"


@dataclass(frozen=True)
class TopologySettings:
    service_name: str = config.SERVICE_NAME
    table_name: str = config.MOVIES_TABLE
    function_name: str = config.FUNCTION_NAME
    route_method: str = config.ROUTE_METHOD
    route_path: str = config.ROUTE_PATH
    handler_timeout_seconds: float = config.HANDLER_TIMEOUT_SECONDS
    access_log_group: str = config.ACCESS_LOG_GROUP
    access_log_retention_days: int = config.ACCESS_LOG_RETENTION_DAYS
    domain_name: str = config.CUSTOM_DOMAIN_NAME
    hosted_zone_id: str = config.HOSTED_ZONE_ID
    security_policy: str = config.MIN_TLS_VERSION

    @property
    def route_key(self) -> str:
        return f"{self.route_method} {self.route_path}"


@dataclass
class Component:
    logical_id: str
    type: str
    properties: Dict[str, Any]
    depends_on: Tuple[str, ...] = field(default_factory=tuple)

    def render(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"Type": self.type, "Properties": self.properties}
        if self.depends_on:
            out["DependsOn"] = sorted(self.depends_on)
        return out


# Placeholder partition values swapped for pseudo parameters when rendering.
_REGION_TOKEN = "region-token"
_ACCOUNT_TOKEN = "000000000000"


def _sub_arn(resource: str) -> Any:
    if resource == "*":
        return resource
    return {
        "Fn::Sub": resource.replace(f":{_REGION_TOKEN}:", ":${AWS::Region}:").replace(
            f":{_ACCOUNT_TOKEN}:", ":${AWS::AccountId}:"
        )
    }


class ServiceTopology:
    def __init__(self, settings: TopologySettings) -> None:
        self.settings = settings
        self.domain = DomainBinding(
            settings.domain_name,
            Certificate(domain_name=settings.domain_name),
            security_policy=settings.security_policy,
        )
        self.boundary = SecurityBoundary.for_service(
            table=table_arn(_REGION_TOKEN, _ACCOUNT_TOKEN, settings.table_name),
            log_groups=[
                log_group_arn(_REGION_TOKEN, _ACCOUNT_TOKEN, self.function_log_group),
                log_group_arn(_REGION_TOKEN, _ACCOUNT_TOKEN, settings.access_log_group),
            ],
        )
        self.components: Dict[str, Component] = {}
        self._declare()
        self.validate()

    @property
    def function_log_group(self) -> str:
        return f"/aws/lambda/{self.settings.function_name}"

    def _add(self, logical_id: str, type_: str, properties: Dict[str, Any], *after: str) -> None:
        if logical_id in self.components:
            raise TopologyError(f"Duplicate component {logical_id}")
        self.components[logical_id] = Component(logical_id, type_, properties, tuple(after))

    # -- declaration --------------------------------------------------------

    def _declare(self) -> None:
        s = self.settings

        # Storage
        self._add("MoviesTable", "AWS::DynamoDB::Table", {"TableName": s.table_name, **TABLE_DEFINITION})

        # Observability sinks
        self._add("AccessLogGroup", "AWS::Logs::LogGroup", {
            "LogGroupName": s.access_log_group,
            "RetentionInDays": s.access_log_retention_days,
        })
        self._add("FunctionLogGroup", "AWS::Logs::LogGroup", {
            "LogGroupName": self.function_log_group,
            "RetentionInDays": s.access_log_retention_days,
        })

        # Security boundary + compute
        self._add("PutMovieRole", "AWS::IAM::Role", {
            "AssumeRolePolicyDocument": {
                "Version": "2012-10-17",
                "Statement": [{
                    "Effect": "Allow",
                    "Principal": {"Service": "lambda.amazonaws.com"},
                    "Action": "sts:AssumeRole",
                }],
            },
            "Policies": [{
                "PolicyName": f"{s.service_name}-put-movie",
                "PolicyDocument": self.boundary.policy_document(render_resource=_sub_arn),
            }],
        }, "MoviesTable", "FunctionLogGroup")
        self._add("PutMovieFunction", "AWS::Lambda::Function", {
            "FunctionName": s.function_name,
            "Runtime": _LAMBDA_RUNTIME,
            "Handler": _LAMBDA_HANDLER,
            "Role": {"Fn::GetAtt": ["PutMovieRole", "Arn"]},
            # Must exceed the contract timeout; the router reports that timeout itself.
            "Timeout": int(math.ceil(s.handler_timeout_seconds)) + 5,
            "TracingConfig": {"Mode": "Active"},
            "Code": {"S3Bucket": {"Ref": "CodeBucket"}, "S3Key": {"Ref": "CodeKey"}},
            "Environment": {"Variables": {
                "MOVIES_TABLE": {"Ref": "MoviesTable"},
                "HANDLER_TIMEOUT_SECONDS": str(s.handler_timeout_seconds),
                "ACCESS_LOG_GROUP": s.access_log_group,
                "ROUTE_METHOD": s.route_method,
                "ROUTE_PATH": s.route_path,
            }},
        }, "PutMovieRole")

        # Ingress router
        self._add("HttpApi", "AWS::ApiGatewayV2::Api", {
            "Name": s.service_name,
            "ProtocolType": "HTTP",
            # Traffic only arrives through the custom domain.
            "DisableExecuteApiEndpoint": True,
        })
        self._add("PutMovieIntegration", "AWS::ApiGatewayV2::Integration", {
            "ApiId": {"Ref": "HttpApi"},
            "IntegrationType": "AWS_PROXY",
            "IntegrationUri": {"Fn::GetAtt": ["PutMovieFunction", "Arn"]},
            "PayloadFormatVersion": "2.0",
            "TimeoutInMillis": min(30000, int((math.ceil(s.handler_timeout_seconds) + 5) * 1000)),
        }, "PutMovieFunction", "HttpApi")
        self._add("PutMovieRoute", "AWS::ApiGatewayV2::Route", {
            "ApiId": {"Ref": "HttpApi"},
            "RouteKey": s.route_key,
            "Target": {"Fn::Sub": "integrations/${PutMovieIntegration}"},
        }, "PutMovieIntegration")
        self._add("PutMovieInvokePermission", "AWS::Lambda::Permission", {
            "Action": "lambda:InvokeFunction",
            "FunctionName": {"Ref": "PutMovieFunction"},
            "Principal": "apigateway.amazonaws.com",
            "SourceArn": {
                "Fn::Sub": f"arn:${{AWS::Partition}}:execute-api:${{AWS::Region}}:${{AWS::AccountId}}:${{HttpApi}}/*/{s.route_method}{s.route_path}"
            },
        }, "PutMovieFunction", "HttpApi")
        self._add("DefaultStage", "AWS::ApiGatewayV2::Stage", {
            "ApiId": {"Ref": "HttpApi"},
            "StageName": DEFAULT_STAGE,
            "AutoDeploy": True,
            "AccessLogSettings": {
                "DestinationArn": {"Fn::GetAtt": ["AccessLogGroup", "Arn"]},
                "Format": ACCESS_LOG_FORMAT,
            },
        }, "AccessLogGroup", "PutMovieRoute")

        # Domain & transport termination
        self._add("ApiCertificate", "AWS::CertificateManager::Certificate", {
            "DomainName": self.domain.hostname,
            "ValidationMethod": "DNS",
            "DomainValidationOptions": [{
                "DomainName": self.domain.hostname,
                "HostedZoneId": {"Ref": "HostedZoneId"},
            }],
        })
        self._add("ApiDomainName", "AWS::ApiGatewayV2::DomainName", {
            "DomainName": self.domain.hostname,
            "DomainNameConfigurations": [{
                "CertificateArn": {"Ref": "ApiCertificate"},
                "EndpointType": "REGIONAL",
                "SecurityPolicy": self.domain.security_policy,
            }],
        }, "ApiCertificate")
        self._add("ApiMapping", "AWS::ApiGatewayV2::ApiMapping", {
            "ApiId": {"Ref": "HttpApi"},
            "DomainName": {"Ref": "ApiDomainName"},
            "Stage": {"Ref": "DefaultStage"},
        }, "ApiDomainName", "DefaultStage")
        self._add("DnsRecord", "AWS::Route53::RecordSet", {
            "HostedZoneId": {"Ref": "HostedZoneId"},
            "Name": f"{self.domain.hostname}.",
            "Type": "A",
            "AliasTarget": {
                "DNSName": {"Fn::GetAtt": ["ApiDomainName", "RegionalDomainName"]},
                "HostedZoneId": {"Fn::GetAtt": ["ApiDomainName", "RegionalHostedZoneId"]},
                "EvaluateTargetHealth": False,
            },
        }, "ApiDomainName")

    # -- ordering -----------------------------------------------------------

    def _graph(self) -> Dict[str, set]:
        graph: Dict[str, set] = {}
        for logical_id, component in self.components.items():
            for dep in component.depends_on:
                if dep not in self.components:
                    raise TopologyError(f"{logical_id} depends on unknown component {dep}")
            graph[logical_id] = set(component.depends_on)
        return graph

    def _ancestors(self, logical_id: str) -> set:
        seen: set = set()
        stack = list(self.components[logical_id].depends_on)
        while stack:
            dep = stack.pop()
            if dep not in seen:
                seen.add(dep)
                stack.extend(self.components[dep].depends_on)
        return seen

    def validate(self) -> None:
        graph = self._graph()
        try:
            tuple(TopologicalSorter(graph).static_order())
        except CycleError as exc:
            raise TopologyError(f"Initialization order has a cycle: {exc.args[1]}") from exc
        for earlier, later in REQUIRED_ORDER:
            if earlier not in self.components or later not in self.components:
                raise TopologyError(f"Ordering constraint names a missing component: {earlier} -> {later}")
            if earlier not in self._ancestors(later):
                raise TopologyError(f"{later} must be initialized after {earlier}")

    def initialization_order(self) -> List[str]:
        """Deterministic topological order (ties broken by logical id)."""
        sorter = TopologicalSorter(self._graph())
        sorter.prepare()
        order: List[str] = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready())
            order.extend(ready)
            sorter.done(*ready)
        return order

    # -- rendering ----------------------------------------------------------

    def to_cloudformation(self) -> Dict[str, Any]:
        s = self.settings
        return {
            "AWSTemplateFormatVersion": "2010-09-09",
            "Description": f"{s.service_name}: {s.route_key} -> Lambda -> DynamoDB behind {self.domain.hostname}",
            "Parameters": {
                "CodeBucket": {"Type": "String", "Description": "S3 bucket holding the Lambda package"},
                "CodeKey": {"Type": "String", "Description": "S3 key of the Lambda package"},
                "HostedZoneId": {
                    "Type": "AWS::Route53::HostedZone::Id",
                    "Description": f"Hosted zone serving {self.domain.hostname}",
                    **({"Default": s.hosted_zone_id} if s.hosted_zone_id else {}),
                },
            },
            "Resources": {
                logical_id: self.components[logical_id].render()
                for logical_id in self.initialization_order()
            },
            "Outputs": {
                "Endpoint": {"Value": f"https://{self.domain.hostname}{s.route_path}"},
                "TableName": {"Value": {"Ref": "MoviesTable"}},
                "AccessLogGroupArn": {"Value": {"Fn::GetAtt": ["AccessLogGroup", "Arn"]}},
            },
        }
