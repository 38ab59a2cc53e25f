"""permissions.py — Least-privilege security boundary for the compute handler.

The handler's permissions are an explicit, enumerable capability set. The set
is validated when the boundary is constructed (no stray action families, no
wildcard data resources) and every storage call made through a scoped client
is authorized against it before leaving the process. The same set renders the
IAM policy attached to the function's execution role.
"""
from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from movies_api.config import logger
from movies_api.errors import AuthorizationDenied, TopologyError

__all__ = [
    "Capability",
    "LOG_ACTIONS",
    "STORAGE_ACTIONS",
    "ScopedClient",
    "SecurityBoundary",
    "TRACE_ACTIONS",
    "log_group_arn",
    "table_arn",
]

STORAGE_ACTIONS: FrozenSet[str] = frozenset({
    "dynamodb:GetItem",
    "dynamodb:PutItem",
    "dynamodb:UpdateItem",
})
LOG_ACTIONS: FrozenSet[str] = frozenset({
    "logs:CreateLogGroup",
    "logs:CreateLogStream",
    "logs:PutLogEvents",
})
# X-Ray has no resource-level permissions; "*" is the only valid resource.
TRACE_ACTIONS: FrozenSet[str] = frozenset({
    "xray:PutTraceSegments",
    "xray:PutTelemetryRecords",
})

_LOG_RESOURCE = re.compile(r"arn:aws:logs:[^:*]+:[^:*]+:log-group:[^:*]+(:\*)?")

_STATEMENT_SIDS = {
    "dynamodb": "MoviesTableReadWrite",
    "logs": "WriteLogs",
    "xray": "EmitTraces",
}


def table_arn(region: str, account_id: str, table_name: str) -> str:
    return f"arn:aws:dynamodb:{region}:{account_id}:table/{table_name}"


def log_group_arn(region: str, account_id: str, log_group: str) -> str:
    return f"arn:aws:logs:{region}:{account_id}:log-group:{log_group}"


@dataclass(frozen=True)
class Capability:
    action: str
    resource: str

    @property
    def service(self) -> str:
        return self.action.split(":", 1)[0]

    def matches(self, action: str, resource: str) -> bool:
        if action != self.action:
            return False
        if self.resource == resource:
            return True
        # Only log stream patterns ("<group arn>:*") are globbed.
        return self.service == "logs" and fnmatch.fnmatchcase(resource, self.resource)


class SecurityBoundary:
    """An explicit capability set, checked at construction time."""

    def __init__(self, capabilities: Iterable[Capability]) -> None:
        self._capabilities: FrozenSet[Capability] = frozenset(capabilities)
        self._validate()

    @classmethod
    def for_service(
        cls,
        *,
        table: str,
        log_groups: Iterable[str],
    ) -> "SecurityBoundary":
        """Build the boundary for one table ARN and the given log group ARNs."""
        caps: List[Capability] = [Capability(action, table) for action in sorted(STORAGE_ACTIONS)]
        for group in log_groups:
            caps.append(Capability("logs:CreateLogGroup", group))
            caps.append(Capability("logs:CreateLogStream", f"{group}:*"))
            caps.append(Capability("logs:PutLogEvents", f"{group}:*"))
        caps.extend(Capability(action, "*") for action in sorted(TRACE_ACTIONS))
        return cls(caps)

    # -- construction-time checks -------------------------------------------

    def _validate(self) -> None:
        allowed = STORAGE_ACTIONS | LOG_ACTIONS | TRACE_ACTIONS
        tables = set()
        for cap in self._capabilities:
            if cap.action not in allowed:
                raise TopologyError(f"Capability {cap.action} is outside the allowed action set")
            if cap.service == "dynamodb":
                if "*" in cap.resource or not cap.resource.startswith("arn:aws:dynamodb:"):
                    raise TopologyError(f"Storage capability must name a single table ARN, got {cap.resource!r}")
                tables.add(cap.resource)
            elif cap.service == "logs":
                if not _LOG_RESOURCE.fullmatch(cap.resource):
                    raise TopologyError(f"Log capability must name a specific log group, got {cap.resource!r}")
            elif cap.resource != "*":
                raise TopologyError(f"Trace capability resource must be '*', got {cap.resource!r}")
        if len(tables) > 1:
            raise TopologyError(f"Storage capabilities span {len(tables)} tables; exactly one is allowed")

    # -- runtime checks -----------------------------------------------------

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return self._capabilities

    @property
    def storage_resource(self) -> Optional[str]:
        for cap in self._capabilities:
            if cap.service == "dynamodb":
                return cap.resource
        return None

    def is_allowed(self, action: str, resource: str) -> bool:
        return any(cap.matches(action, resource) for cap in self._capabilities)

    def authorize(self, action: str, resource: str) -> None:
        if not self.is_allowed(action, resource):
            logger.warning("[AUTHZ] denied action=%s resource=%s", action, resource)
            raise AuthorizationDenied(action, resource)

    def policy_document(self, render_resource: Optional[Callable[[str], Any]] = None) -> Dict[str, Any]:
        """Render the capability set as an IAM policy document.

        ``render_resource`` maps a resource ARN to the value placed in the
        document (e.g. a CloudFormation intrinsic).
        """
        render = render_resource or (lambda resource: resource)
        grouped: Dict[str, Dict[str, set]] = {}
        for cap in self._capabilities:
            entry = grouped.setdefault(cap.service, {"actions": set(), "resources": set()})
            entry["actions"].add(cap.action)
            entry["resources"].add(cap.resource)

        statements = []
        for service in ("dynamodb", "logs", "xray"):
            entry = grouped.get(service)
            if not entry:
                continue
            statements.append({
                "Sid": _STATEMENT_SIDS[service],
                "Effect": "Allow",
                "Action": sorted(entry["actions"]),
                "Resource": [render(r) for r in sorted(entry["resources"])],
            })
        return {"Version": "2012-10-17", "Statement": statements}

    def scoped_dynamodb(self, client: Any, *, region: str, account_id: str) -> "ScopedClient":
        def _resource(params: Dict[str, Any]) -> str:
            name = params.get("TableName")
            return table_arn(region, account_id, name) if name else "*"

        return ScopedClient(client, self, "dynamodb", _resource)

    def scoped_logs(self, client: Any, *, region: str, account_id: str) -> "ScopedClient":
        def _resource(params: Dict[str, Any]) -> str:
            group = params.get("logGroupName")
            if not group:
                return "*"
            arn = log_group_arn(region, account_id, group)
            stream = params.get("logStreamName")
            return f"{arn}:log-stream:{stream}" if stream else arn

        return ScopedClient(client, self, "logs", _resource)


def _operation_name(method_name: str) -> str:
    return "".join(part.capitalize() for part in method_name.split("_"))


class ScopedClient:
    """boto3 client proxy that authorizes every operation against a boundary."""

    _PASSTHROUGH = frozenset({"meta", "exceptions"})

    def __init__(
        self,
        client: Any,
        boundary: SecurityBoundary,
        service: str,
        resource_for: Callable[[Dict[str, Any]], str],
    ) -> None:
        self._client = client
        self._boundary = boundary
        self._service = service
        self._resource_for = resource_for

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name in self._PASSTHROUGH or name.startswith("_") or not re.fullmatch(r"[a-z][a-z0-9_]*", name):
            return attr
        action = f"{self._service}:{_operation_name(name)}"

        def _call(**kwargs: Any) -> Any:
            self._boundary.authorize(action, self._resource_for(kwargs))
            return attr(**kwargs)

        return _call
