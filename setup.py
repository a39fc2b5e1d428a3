"""
gbdtonnx 安装配置
"""

from pathlib import Path

from setuptools import find_packages, setup

# 读取 README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# 读取 requirements
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_file.exists():
    requirements = requirements_file.read_text(encoding="utf-8").strip().split("\n")
    requirements = [r.strip() for r in requirements if r.strip() and not r.startswith("#")]

setup(
    name="gbdtonnx",
    version="0.1.0",
    description="CSV 驱动的梯度提升树多分类训练、ONNX 导出与推理",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="gbdtonnx Contributors",
    packages=find_packages(include=["gbdtonnx", "gbdtonnx.*"]),
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-xdist>=3.0.0",
        ],
        "tracking": [
            "mlflow>=2.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "gbdtonnx=gbdtonnx.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
)
