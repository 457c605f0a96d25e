from setuptools import setup, find_packages

# Read dependencies from requirements.txt
with open("requirements.txt") as f:
    install_requires = [line.strip() for line in f if line.strip() and not line.startswith("#")]

# Read version from version.txt
with open("version.txt") as f:
    version = f.read().strip()

setup(
    name="nrs",
    version=version,
    packages=["nrs"] + ["nrs." + pkg for pkg in find_packages(where="nrs")],
    package_dir={"nrs": "nrs"},
    package_data={"nrs": ["input/*.json", "input/presets/*.yaml"]},
    install_requires=install_requires,
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": [
            "nrs=nrs.main:main",
        ],
    },
    include_package_data=True,
    description="N-Run Stability: repeated start/serve/teardown stress test for LLM serving frameworks",
    author="Advanced Micro Devices, Inc.",
    author_email="support@amd.com",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.9",
)
