from setuptools import setup, find_packages

setup(
    name="pdipm",
    version="0.1.0",
    packages=find_packages(include=["pdipm", "pdipm.*"]),
    install_requires=["numpy", "scipy", "matplotlib"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.9",
    author="Your Name",
    description="Infeasible start primal-dual interior point solver for convex quadratic programs",
    license="MIT",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License"
    ]
)
