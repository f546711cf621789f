"""
capacity_expansion/config.py

Configuration module to define important directory paths (package, working directory and the default
input/output folders of the case studies)."""

import os

PATH_TO_SRC_DIR = os.path.dirname(os.path.abspath(__file__))
PATH_TO_WD = os.path.abspath(os.path.join(PATH_TO_SRC_DIR, os.pardir))

INPUT_FOLDER = os.path.join(PATH_TO_WD, 'data', 'input')
OUTPUT_FOLDER = os.path.join(PATH_TO_WD, 'data', 'output')
