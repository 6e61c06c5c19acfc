# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Allow running fprofreport as a module: python -m fprofreport
"""

from fprofreport.cli import main

if __name__ == "__main__":
    main()
