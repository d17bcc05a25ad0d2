#!/usr/bin/env python
"""
Particle Absorption Correction - Main Runner Script

This script runs one absorption correction from the command line.

Usage:
    python run_correction.py
    python run_correction.py --shape sphere --size 1.5 -n 200000
    python run_correction.py --shape mesh --stl particle.stl --seed 1

Output files (Data/) will be saved in the current working directory or in
the directory given with --output-dir.
"""

from pathlib import Path
import sys

# 添加项目根目录到路径（确保可以导入 particle_absorption）
project_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_dir))

from particle_absorption.runner import main as runner_main


def main():
    """脚本入口点"""
    runner_main()


if __name__ == "__main__":
    main()
