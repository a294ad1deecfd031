from setuptools import setup

__version__ = "0.1.0"


def get_long_desc():
    return open('README.rst', 'r').read()


def get_requirements():
    lines = open('requirements.txt', 'r').readlines()
    reqs = [line.strip() for line in lines if line.strip()]
    return reqs


setup(
    name="henkan",
    version=__version__,
    packages=["henkan"],
    description="Henkan builds multi-version resource models from cloud API "
                "descriptions and generates the code that converts between versions",
    long_description=get_long_desc(),
    long_description_content_type="text/x-rst",
    keywords=["code generation", "API versioning", "conversion", "hub and spoke",
              "resource model", "Kubernetes", "controllers"],
    install_requires=get_requirements(),
    extras_require={"test": ["pytest"]},
    python_requires=">=3.8",
    classifiers=["Development Status :: 3 - Alpha",
                 "Intended Audience :: Developers",
                 "License :: OSI Approved :: MIT License",
                 "Operating System :: OS Independent",
                 "Programming Language :: Python :: 3 :: Only",
                 "Programming Language :: Python :: 3.8",
                 "Programming Language :: Python :: 3.9",
                 "Programming Language :: Python :: 3.10",
                 "Programming Language :: Python :: 3.11",
                 "Programming Language :: Python :: 3.12",
                 "Topic :: Software Development",
                 "Topic :: Software Development :: Code Generators",
                 "Topic :: Software Development :: Libraries :: Python Modules",
                 "Topic :: Utilities",
                 "Typing :: Typed"],
    license="MIT"
)
