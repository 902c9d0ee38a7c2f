#!/usr/bin/env python3
"""spatialvault – ACLED puller."""

from spatialvault.etl.pull_acled import main

if __name__ == "__main__":
    main()
