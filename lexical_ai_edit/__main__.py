# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

from .cli import main

if __name__ == "__main__":
    main()
