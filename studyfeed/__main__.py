"""
`python -m studyfeed` runs the same CLI as the `studyfeed` console script.
"""

from studyfeed.cli import main

if __name__ == "__main__":
    main()
