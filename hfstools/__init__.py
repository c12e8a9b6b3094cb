"""Known-volume bookkeeping, listings, block cache, B*-trees and MDB checks for HFS volumes."""

__version__ = "0.1.0"