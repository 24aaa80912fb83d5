"""GitHub tool server: repository, issue and pull request access."""

from ..models import RiskLevel, ToolInfo, ToolServerConfig

REQUIRED_GITHUB_SCOPES = ["repo", "read:org", "read:user"]
READONLY_GITHUB_SCOPES = ["public_repo", "read:org", "read:user"]


def _tools(category: str, risk: RiskLevel, *names: str) -> dict[str, ToolInfo]:
    return {name: ToolInfo(category=category, risk=risk) for name in names}


GITHUB_TOOLS: dict[str, ToolInfo] = {
    **_tools(
        "repository", RiskLevel.SAFE,
        "get_file_contents", "search_repositories", "search_code",
        "list_commits", "list_branches",
    ),
    **_tools(
        "issues", RiskLevel.SAFE,
        "get_issue", "list_issues", "search_issues",
    ),
    **_tools(
        "pullRequests", RiskLevel.SAFE,
        "get_pull_request", "list_pull_requests", "get_pull_request_files",
    ),
    **_tools(
        "issues", RiskLevel.MODERATE,
        "create_issue", "update_issue", "add_issue_comment",
    ),
    **_tools(
        "pullRequests", RiskLevel.MODERATE,
        "create_pull_request", "create_pull_request_review",
    ),
    **_tools(
        "repository", RiskLevel.MODERATE,
        "create_or_update_file", "create_branch", "fork_repository",
    ),
    **_tools(
        "repository", RiskLevel.DANGEROUS,
        "push_files", "create_repository", "delete_file",
    ),
    **_tools("pullRequests", RiskLevel.DANGEROUS, "merge_pull_request"),
}

GITHUB_SERVER = ToolServerConfig(
    name="github",
    command="npx",
    args=["-y", "@modelcontextprotocol/server-github"],
    secrets={"GITHUB_PERSONAL_ACCESS_TOKEN": "github.token"},
    enabled=False,
    tools=GITHUB_TOOLS,
    category_descriptions={
        "repository": "Repository Access",
        "issues": "Issues",
        "pullRequests": "Pull Requests",
    },
)
