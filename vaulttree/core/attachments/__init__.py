"""
Attachment sub-formats stored inside entries.
"""

from vaulttree.core.attachments.agent_settings import AgentSettings

__all__ = ["AgentSettings"]
