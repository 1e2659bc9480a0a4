"""
Container module - Encrypted on-disk representation of a tree.
"""

from vaulttree.core.container.codec import ContainerCodec, new_tree

__all__ = ["ContainerCodec", "new_tree"]
