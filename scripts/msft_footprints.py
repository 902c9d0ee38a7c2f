#!/usr/bin/env python3
"""spatialvault – Microsoft building footprints loader."""

from spatialvault.etl.msft_footprints import main

if __name__ == "__main__":
    main()
