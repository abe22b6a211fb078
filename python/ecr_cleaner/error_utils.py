"""
Error types and actionable error builders for the ECR cleaner pipeline.

Every fatal pipeline failure is raised as a subclass of CleanupError so the
CLI can print a single message with suggested fixes and exit non-zero. Per-item
deletion failures reported by the registry are NOT errors; they are returned
inside the deletion report.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""

    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    PERMISSION = "permission"
    RESOURCE = "resource"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        suggestions: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [self.message]

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\nAdditional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


class CleanupError(ActionableError):
    """Base class for fatal pipeline errors"""


class DiscoveryError(CleanupError):
    """Cluster query failed (unreachable, auth, malformed output)"""


class EnumerationError(CleanupError):
    """Registry listing failed for a repository"""


class DescribeError(CleanupError):
    """Registry metadata fetch failed for a batch of images"""


class DeletionError(CleanupError):
    """Registry rejected a deletion call outright"""


def _error_code(error: Exception) -> str:
    """Extract the AWS error code from a botocore ClientError, if any"""
    response = getattr(error, "response", None) or {}
    return response.get("Error", {}).get("Code", "")


def _is_forbidden(error: Exception) -> bool:
    error_str = str(error).lower()
    return "403" in error_str or "forbidden" in error_str or "accessdenied" in error_str.replace(" ", "")


def create_kubernetes_error(operation: str, error: Exception) -> DiscoveryError:
    """Create actionable error for Kubernetes API failures"""
    error_str = str(error).lower()

    suggestions = [
        "Verify Kubernetes cluster access (kubectl cluster-info)",
        "Check if running in-cluster or using kubeconfig",
        "Verify RBAC permissions to list namespaces and pods",
    ]

    if _is_forbidden(error):
        suggestions.insert(0, "Check Kubernetes RBAC permissions (get/list on namespaces and pods)")
        suggestions.insert(1, "Verify the service account has a ClusterRole binding")

    if "401" in error_str or "unauthorized" in error_str:
        suggestions.insert(0, "Refresh your kubeconfig credentials")

    return DiscoveryError(
        message=f"Kubernetes operation failed: {operation}",
        category=ErrorCategory.PERMISSION if _is_forbidden(error) else ErrorCategory.CONNECTION,
        suggestions=suggestions,
        details={
            "operation": operation,
            "error_type": type(error).__name__,
            "error_message": str(error),
        },
    )


def create_registry_error(
    error_class: type,
    operation: str,
    repository_name: str,
    error: Exception,
    extra_details: Optional[Dict[str, Any]] = None,
) -> CleanupError:
    """Create actionable error for ECR API failures

    Args:
        error_class: CleanupError subclass to instantiate
        operation: ECR operation that failed (e.g. "ListImages")
        repository_name: Repository the operation targeted
        error: Underlying exception (usually botocore ClientError)
        extra_details: Additional context appended to the error details
    """
    code = _error_code(error)
    error_str = str(error).lower()

    suggestions = [
        "Verify AWS credentials are configured (aws configure or AWS_PROFILE)",
        "Verify the AWS region matches the registry (--region)",
        f"Check IAM permissions for ecr:{operation}",
    ]

    category = ErrorCategory.RESOURCE
    if code == "RepositoryNotFoundException":
        suggestions.insert(0, f"Repository '{repository_name}' does not exist in this registry")
        suggestions.insert(1, f"Exclude it with --exclude-repos {repository_name} or set --registry-host")
    elif code in ("AccessDeniedException", "UnrecognizedClientException") or _is_forbidden(error):
        category = ErrorCategory.PERMISSION
        suggestions.insert(0, "Check the IAM policy attached to the caller identity")
    elif "credentials" in error_str:
        category = ErrorCategory.AUTHENTICATION
        suggestions.insert(0, "Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY or use an instance profile")
    elif "endpoint" in error_str or "connect" in error_str:
        category = ErrorCategory.CONNECTION
        suggestions.insert(0, "Check network connectivity to the ECR endpoint")

    return error_class(
        message=f"ECR {operation} failed for repository {repository_name}",
        category=category,
        suggestions=suggestions,
        details={
            "operation": operation,
            "repository": repository_name,
            "error_code": code or type(error).__name__,
            "error_message": str(error),
            **(extra_details or {}),
        },
    )
