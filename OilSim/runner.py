# -- Oil Simulation Runner -- #

'''
Command-line entry point for running SPH oil blob simulations.

Sets up a blob drop scenario, runs the update loop, displays
progress, and optionally exports frame data and diagnostic plots.

Usage:
    oilsim                                        # Default small blob
    oilsim --preset standard                      # 500-particle stirred blob
    oilsim --config configs/blobDrop_default.json
    oilsim --implicit --steps 60                  # Implicit velocity solve
    oilsim --no-export --plot                     # Plots only

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import argparse
import json
import logging
import os
import time as timeModule
from dataclasses import replace

from OilSim.sph.protocols import OilSimConfig
from OilSim.scenarios.blobDrop import BlobDropConfig, createBlobDrop
from OilSim.export.frameExporter import FrameExporter
from OilSim.visualization.diagnosticPlots import createFramePlot, createDiagnosticsDashboard

logger = logging.getLogger(__name__)


#--------------------------------------------------------------------#
# -- CLI Argument Parser -- #
#--------------------------------------------------------------------#

def buildParser() -> argparse.ArgumentParser:
    '''Build the CLI argument parser.'''
    parser = argparse.ArgumentParser(
        description='OilSim -- SPH oil blob simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to JSON configuration file',
    )
    parser.add_argument(
        '--preset', type=str, default='small',
        choices=['small', 'standard'],
        help='Scenario preset (default: small)',
    )
    parser.add_argument(
        '--steps', type=int, default=None,
        help='Override the number of update steps',
    )
    parser.add_argument(
        '--implicit', action='store_true',
        help='Use the implicit velocity solver',
    )
    parser.add_argument(
        '--rotation', type=float, default=None,
        help='Override the spin rate applied every step',
    )
    parser.add_argument(
        '--no-export', action='store_true',
        help='Skip frame data export',
    )
    parser.add_argument(
        '--plot', action='store_true',
        help='Write frame and diagnostics plots as HTML',
    )
    parser.add_argument(
        '--output-dir', type=str, default='OilSim/output',
        help='Output directory for exported frames and plots (default: OilSim/output)',
    )
    parser.add_argument(
        '--debug', action='store_true',
        help='Enable debug logging',
    )

    return parser


def loadRunConfig(configPath: str) -> tuple[OilSimConfig, BlobDropConfig]:
    '''
    Read system and scenario configuration from one JSON file.

    The system sections are parsed by OilSimConfig.fromDict; an
    optional 'scenario' section holds BlobDropConfig fields.
    '''
    with open(configPath, 'r') as f:
        data = json.load(f)

    return OilSimConfig.fromDict(data), BlobDropConfig(**data.get('scenario', {}))


#--------------------------------------------------------------------#
# -- Runner Class -- #
#--------------------------------------------------------------------#

class OilSimRunner:
    '''
    Runs an oil blob simulation and stores results.

    Handles the full pipeline: scenario setup, update loop with
    progress reporting, and optional frame export and plotting.
    '''

    def __init__(self) -> None:
        self._exporter: FrameExporter = FrameExporter()

    @property
    def exporter(self) -> FrameExporter:
        return self._exporter

    def runFromConfig(self, configPath: str, dropOverrides: dict | None = None, **kwargs) -> dict:
        '''
        Run a blob drop from a JSON configuration file.

        The system sections are read by OilSimConfig.fromDict; an
        optional 'scenario' section holds BlobDropConfig fields.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file
        dropOverrides : dict | None
            BlobDropConfig fields replacing the file's scenario values
        **kwargs
            Forwarded to run()

        Returns:
        --------
        dict : Simulation results summary
        '''
        simConfig, dropConfig = loadRunConfig(configPath)
        if dropOverrides:
            dropConfig = replace(dropConfig, **dropOverrides)
        return self.run(dropConfig, simConfig=simConfig, **kwargs)

    def run(
        self,
        dropConfig: BlobDropConfig,
        simConfig: OilSimConfig | None = None,
        doExport: bool = True,
        doPlot: bool = False,
        exportDir: str = 'OilSim/output',
    ) -> dict:
        '''
        Run a blob drop simulation.

        Parameters:
        -----------
        dropConfig : BlobDropConfig
            Scenario configuration
        simConfig : OilSimConfig | None
            Base system configuration
        doExport : bool
            Whether to export frame data
        doPlot : bool
            Whether to write HTML plots
        exportDir : str
            Output directory for exports and plots

        Returns:
        --------
        dict : Simulation results summary
        '''
        print()
        print('=' * 62)
        print('  OILSIM -- SPH OIL BLOB SIMULATION')
        print('=' * 62)
        print()

        #--------------------------------------------------------------------#
        # Scenario Setup
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  SCENARIO SETUP')
        print('-' * 62)

        config, system = createBlobDrop(dropConfig, simConfig)

        print(f'  Container Radius:  {config.containerRadius:8.3f}')
        print(f'  Smoothing Radius:  {config.smoothingRadius:8.3f}')
        print(f'  Particles:         {system.particleCount:8d}')
        print(f'  Spawn Center:      ({dropConfig.spawnX:6.3f}, {dropConfig.spawnY:6.3f})')
        print(f'  Steps:             {dropConfig.nSteps:8d}')
        print(f'  Timestep:          {min(dropConfig.dt, config.maxTimeStep):8.4f}')
        print(f'  Rotation Rate:     {dropConfig.rotationRate:8.4f}')
        print(f'  Integration:       {"implicit" if config.useImplicitIntegration else "explicit":>8}')
        print(f'  Seed:              {str(config.seed):>8}')
        print()

        self._exporter.addFrame(system.currentState, system.renderBuffers())

        #--------------------------------------------------------------------#
        # Simulation Loop
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  RUNNING SIMULATION')
        print('-' * 62)
        print()
        print(f'  {"Frame":>8}  {"Time":>8}  {"KE":>10}  {"MaxVel":>8}  {"Centroid":>8}  {"CG it":>6}  {"Blobs":>5}')
        print('  ' + '-' * 58)

        wallClockStart = timeModule.time()
        printInterval = max(1, dropConfig.nSteps // 20)

        for step in range(1, dropConfig.nSteps + 1):
            state = system.update(dropConfig.dt, rotationRate=dropConfig.rotationRate)

            implicitStats = system.implicitSolver.getStats() if config.useImplicitIntegration else None
            self._exporter.recordState(state, implicitStats)

            if step % dropConfig.outputInterval == 0:
                self._exporter.addFrame(state, system.renderBuffers())

            if step % printInterval == 0 or step == dropConfig.nSteps:
                cgIterations = implicitStats['iterations'] if implicitStats else 0
                print(
                    f'  {state.frame:8d}  {state.time:8.3f}  {state.kineticEnergy:10.3e}  '
                    f'{state.maxVelocity:8.4f}  {state.centroidDistance:8.4f}  '
                    f'{cgIterations:6d}  {len(system.blobClusters):5d}'
                )

        wallClockSeconds = timeModule.time() - wallClockStart

        finalState = system.currentState
        clusters = system.checkBlobClusters()
        stats = system.getStats()

        print()
        print(f'  Simulation complete.')
        print(f'  Total steps:       {finalState.frame:8d}')
        print(f'  Wall-clock time:   {wallClockSeconds:8.1f} s')
        print(f'  Frames collected:  {self._exporter.nFrames:8d}')
        print()

        #--------------------------------------------------------------------#
        # Export
        #--------------------------------------------------------------------#
        exportPath = None
        if doExport:
            print('-' * 62)
            print('  EXPORTING FRAME DATA')
            print('-' * 62)

            exportPath = self._exporter.export(config=config, outputDir=exportDir, scenarioName='blobDrop')
            print(f'  Exported to: {exportPath}')
            print()

        plotPaths: list[str] = []
        if doPlot:
            print('-' * 62)
            print('  WRITING PLOTS')
            print('-' * 62)

            os.makedirs(exportDir, exist_ok=True)
            frameFig = createFramePlot(system.renderBuffers(), config.containerRadius, clusters)
            dashFig = createDiagnosticsDashboard(self._exporter.history)
            for name, fig in (('blobDrop_frame.html', frameFig), ('blobDrop_diagnostics.html', dashFig)):
                path = os.path.join(exportDir, name)
                fig.write_html(path)
                plotPaths.append(path)
                print(f'  Wrote: {path}')
            print()

        #--------------------------------------------------------------------#
        # Summary
        #--------------------------------------------------------------------#
        print('=' * 62)
        print('  SIMULATION SUMMARY')
        print('=' * 62)
        print(f'  Final KE:          {finalState.kineticEnergy:10.3e}')
        print(f'  Max Velocity:      {finalState.maxVelocity:8.4f}')
        print(f'  Centroid Drift:    {finalState.centroidDistance:8.4f}')
        print(f'  Max Radius:        {finalState.maxRadius:8.4f}')
        print(f'  Blobs:             {len(clusters):8d}')
        print(f'  Repairs:           {finalState.repairs:8d}')
        print(f'  Update Time:       {stats["updateTime"]:8.2f} ms (last step)')
        print('=' * 62)
        print()

        return {
            'finalState': finalState,
            'wallClockSeconds': wallClockSeconds,
            'nFrames': self._exporter.nFrames,
            'exportPath': exportPath,
            'plotPaths': plotPaths,
            'blobCount': len(clusters),
            'stats': stats,
        }


#--------------------------------------------------------------------#
# -- CLI Entry Point -- #
#--------------------------------------------------------------------#

def main(argv: list[str] | None = None) -> None:
    '''CLI entry point.'''
    parser = buildParser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s %(levelname)-7s %(name)s: %(message)s',
    )

    runner = OilSimRunner()
    runKwargs = dict(doExport=not args.no_export, doPlot=args.plot, exportDir=args.output_dir)

    overrides: dict = {}
    if args.steps is not None:
        overrides['nSteps'] = args.steps
    if args.rotation is not None:
        overrides['rotationRate'] = args.rotation
    if args.implicit:
        overrides['useImplicit'] = True

    if args.config:
        logger.debug('Running blob drop from %s with overrides %s', args.config, overrides)
        runner.runFromConfig(args.config, dropOverrides=overrides, **runKwargs)
        return

    presets = {
        'small': BlobDropConfig.small,
        'standard': BlobDropConfig.standard,
    }
    dropConfig = replace(presets[args.preset](), **overrides)

    logger.debug('Running blob drop: %s', dropConfig)
    runner.run(dropConfig, **runKwargs)


if __name__ == '__main__':
    main()
