"""Memory tool server: a persistent knowledge graph."""

from ..models import RiskLevel, ToolInfo, ToolServerConfig

MEMORY_SERVER = ToolServerConfig(
    name="memory",
    command="npx",
    args=["-y", "@modelcontextprotocol/server-memory"],
    enabled=False,
    tools={
        "read_graph": ToolInfo(category="read", risk=RiskLevel.SAFE),
        "search_nodes": ToolInfo(category="read", risk=RiskLevel.SAFE),
        "open_nodes": ToolInfo(category="read", risk=RiskLevel.SAFE),
        "create_entities": ToolInfo(category="write", risk=RiskLevel.MODERATE),
        "create_relations": ToolInfo(category="write", risk=RiskLevel.MODERATE),
        "add_observations": ToolInfo(category="write", risk=RiskLevel.MODERATE),
        "delete_entities": ToolInfo(category="delete", risk=RiskLevel.DANGEROUS),
        "delete_relations": ToolInfo(category="delete", risk=RiskLevel.DANGEROUS),
        "delete_observations": ToolInfo(category="delete", risk=RiskLevel.DANGEROUS),
    },
    category_descriptions={
        "read": "Memory Retrieval",
        "write": "Memory Storage",
        "delete": "Memory Deletion",
    },
)
