from setuptools import setup

setup(
    name='minipython',
    version='0.1.0',
    description='MiniPython teaching language: lexer, parser, bytecode VM and stepping interpreter',
    package_dir={'minipython': 'src/minipython'},
    packages=[
        'minipython',
        'minipython.parser',
        'minipython.vm',
        'minipython.interpreter',
        'minipython.cli',
    ],
    include_package_data=True,
    python_requires='>=3.8',
    install_requires=[
        'click>=7.0',
        'rich>=9.0'
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'minipy = minipython.cli.main:cli'
        ]
    },
    classifiers=[
        'Programming Language :: Python :: 3',
    ],
)
