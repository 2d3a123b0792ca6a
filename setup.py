import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="gsmatch",
    version="0.0.1",
    author="gsmatch developers",
    description="Stable matching with deferred acceptance and a blocking pair checker",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests"]),
    install_requires=['numpy', 'scipy', 'numba'],
    extras_require={'test': ['pytest']},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
