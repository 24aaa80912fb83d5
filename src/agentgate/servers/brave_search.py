"""Brave Search tool server: read-only web search."""

from ..models import RiskLevel, ToolInfo, ToolServerConfig

BRAVE_SEARCH_SERVER = ToolServerConfig(
    name="brave-search",
    command="npx",
    args=["-y", "@modelcontextprotocol/server-brave-search"],
    secrets={"BRAVE_API_KEY": "brave-search.api_key"},
    enabled=False,
    tools={
        "brave_web_search": ToolInfo(category="webSearch", risk=RiskLevel.SAFE),
        "brave_local_search": ToolInfo(category="webSearch", risk=RiskLevel.SAFE),
    },
    category_descriptions={"webSearch": "Web Search"},
)
