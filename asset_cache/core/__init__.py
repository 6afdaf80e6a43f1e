"""
PyAssetCache core submodule.
Everything that decides when something gets loaded and where it ends
up lives here:
 - The resource cache and its in-progress placeholder
 - The loader registry
 - The pending queue and batch loading procedures
 - The builtin threaded loaders
"""
