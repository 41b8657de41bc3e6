from setuptools import find_packages, setup

with open("requirements.txt", "r", encoding="UTF-8") as f:
    required = f.read().splitlines()

setup(
    name="ethcall",
    version="0.1",
    packages=find_packages("src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=required,
    extras_require={"test": ["pytest", "websockets"]},
)
